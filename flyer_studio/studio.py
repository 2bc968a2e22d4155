"""
Flyer Studio sessions
One session = one wizard, its orchestrator, Gemini client and run log, all in memory
"""

import uuid
from typing import Optional, Dict, Any, List

from .config_loader import Settings, load_settings, load_template_catalog
from .export import save_flyer, export_flyer
from .gemini_client import GeminiClient
from .logger import RunLogger
from .orchestrator import GenerationOrchestrator
from .wizard import WizardController


class FlyerStudioSession:
    """Wires the wizard, the Gemini client and the orchestrator for one user session"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        gemini_client: Optional[GeminiClient] = None,
        template_catalog: Optional[List[str]] = None,
        session_id: Optional[str] = None,
        echo_logs: bool = True
    ):
        if settings is None:
            settings, settings_error = load_settings()
        else:
            settings_error = None
        self.settings = settings
        self.session_id = session_id or uuid.uuid4().hex

        self.logger = RunLogger(echo=echo_logs)
        if settings_error:
            self.logger.add_warning(settings_error)

        if template_catalog is None:
            template_catalog, catalog_error = load_template_catalog()
            if catalog_error:
                self.logger.add_warning(catalog_error)

        self.wizard = WizardController(
            template_catalog=template_catalog,
            max_image_bytes=settings.max_image_bytes,
        )
        self.client = gemini_client or GeminiClient(settings=settings)
        self.orchestrator = GenerationOrchestrator(
            self.wizard,
            self.client,
            logger=self.logger,
            settings=settings,
        )
        self.logger.log(f"Session {self.session_id} started (API key selected: {self.client.has_api_key})")

    def export(self):
        """(filename, bytes) of the current flyer, or None before the first generation"""
        flyer = self.orchestrator.flyer
        if flyer is None:
            return None
        return export_flyer(flyer, self.wizard.draft.product)

    def save(self, directory: Optional[str] = None) -> Optional[str]:
        flyer = self.orchestrator.flyer
        if flyer is None:
            return None
        filepath = save_flyer(flyer, self.wizard.draft.product, directory or self.settings.export_dir)
        self.logger.log(f"Flyer saved to {filepath}")
        return filepath

    def snapshot(self) -> Dict[str, Any]:
        data = {"session_id": self.session_id}
        data.update(self.wizard.snapshot())
        data.update(self.orchestrator.snapshot())
        return data


class SessionStore:
    """In-memory sessions by id. Nothing survives a restart."""

    def __init__(self, settings: Settings, template_catalog: Optional[List[str]] = None, client_factory=None):
        self.settings = settings
        self.template_catalog = template_catalog
        self.client_factory = client_factory
        self._sessions: Dict[str, FlyerStudioSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> FlyerStudioSession:
        client = self.client_factory(self.settings) if self.client_factory else None
        session = FlyerStudioSession(
            settings=self.settings,
            gemini_client=client,
            template_catalog=self.template_catalog,
        )
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[FlyerStudioSession]:
        return self._sessions.get(session_id)

    def discard(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None
