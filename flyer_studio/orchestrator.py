"""
Generation Orchestrator for Flyer Studio

Drives the two asynchronous Gemini calls of a session and maps their outcomes
onto a single status:

    IDLE --logo replaced--> PROCESSING(branding) --done/failed--> IDLE
    IDLE --generate------> PROCESSING(generation: analyzing -> designing)
                               --success--> IDLE (+ flyer, shown as COMPLETED)
                               --failure--> ERROR (draft kept for retry)

Only one generation may be in flight. Branding requests may overlap; each one
carries a sequence number and only the newest may touch the draft.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional, Set, List, Dict, Any

from .config_loader import Settings
from .errors import AssetConversionError, GenerationError, FlyerStudioError
from .gemini_client import GeminiClient
from .image_utils import to_asset, shrink_asset
from .logger import RunLogger
from .models import (
    Asset,
    AspectRatio,
    BrandProfile,
    GeneratedFlyer,
    GenerationStatus,
    Operation,
    Phase,
)
from .wizard import WizardController, SlotKind

GENERIC_ERROR_MESSAGE = "Hubo un error en el servidor de diseño. Inténtalo de nuevo."

STAGE_ANALYZING = "analyzing"
STAGE_DESIGNING = "designing"


@dataclass(frozen=True)
class OrchestratorState:
    phase: Phase = Phase.IDLE
    operation: Optional[Operation] = None
    stage: Optional[str] = None
    message: Optional[str] = None


IDLE = OrchestratorState()


class GenerationOrchestrator:
    """Sequences branding extraction and flyer generation for one wizard session"""

    def __init__(
        self,
        wizard: WizardController,
        client: GeminiClient,
        logger: Optional[RunLogger] = None,
        settings: Optional[Settings] = None
    ):
        self.wizard = wizard
        self.client = client
        self.logger = logger or RunLogger()
        self.settings = settings or client.settings

        self.state = IDLE
        self.flyer: Optional[GeneratedFlyer] = None
        self.brand_profile: Optional[BrandProfile] = None

        self._branding_sequence = 0
        self._branding_tasks: Set[asyncio.Task] = set()

        wizard.add_logo_listener(self.handle_logo_replaced)

    @property
    def status(self) -> GenerationStatus:
        """Display status derived from the phase"""
        state = self.state
        if state.phase is Phase.ERROR:
            return GenerationStatus.ERROR
        if state.phase is Phase.PROCESSING:
            if state.operation is Operation.BRANDING:
                return GenerationStatus.BRANDING
            if state.stage == STAGE_ANALYZING:
                return GenerationStatus.ANALYZING
            return GenerationStatus.DESIGNING
        if self.flyer is not None:
            return GenerationStatus.COMPLETED
        return GenerationStatus.IDLE

    @property
    def is_generating(self) -> bool:
        return self.state.phase is Phase.PROCESSING and self.state.operation is Operation.GENERATION

    @property
    def branding_sequence(self) -> int:
        return self._branding_sequence

    async def _load_asset(self, ref: str, max_dimension: Optional[int] = None) -> Asset:
        asset = await asyncio.to_thread(
            to_asset,
            ref,
            self.settings.fetch_timeout,
            self.settings.max_image_bytes,
        )
        if max_dimension:
            try:
                asset = await asyncio.to_thread(shrink_asset, asset, max_dimension)
            except AssetConversionError as e:
                # Pillow cannot decode every format Gemini accepts (e.g. HEIC)
                self.logger.add_warning(f"Logo kept at original size: {e}")
        return asset

    # -- branding -----------------------------------------------------------

    def handle_logo_replaced(self, ref: str) -> asyncio.Task:
        """
        Logo slot listener: start a branding extraction for the new logo

        Must be called with a running event loop.

        Raises:
            RuntimeError: no running event loop, state is left untouched
        """
        loop = asyncio.get_running_loop()
        self._branding_sequence += 1
        sequence = self._branding_sequence
        if not self.is_generating:
            self.state = OrchestratorState(Phase.PROCESSING, Operation.BRANDING)

        self.logger.log(f"Logo replaced, starting branding #{sequence}")
        task = loop.create_task(self._run_branding(sequence, ref))
        self._branding_tasks.add(task)
        task.add_done_callback(self._branding_tasks.discard)
        return task

    async def _run_branding(self, sequence: int, ref: str):
        model_id = self.settings.branding_model
        start_time = time.time()

        try:
            try:
                logo = await self._load_asset(ref, max_dimension=self.settings.branding_max_dimension)
            except AssetConversionError as e:
                self.logger.set_branding_result(
                    sequence, model_id, time.time() - start_time, False,
                    error=f"Logo could not be processed: {e}"
                )
                return

            if sequence == self._branding_sequence:
                self.wizard.record_logo(ref)

            try:
                profile = await self.client.extract_brand_colors(logo)
            except Exception as e:
                self.logger.set_branding_result(
                    sequence, model_id, time.time() - start_time, False,
                    error=f"Branding call failed: {e}"
                )
                return

            stale = sequence != self._branding_sequence
            self.logger.set_branding_result(
                sequence, model_id, time.time() - start_time, True,
                hex_color=profile.hex,
                vibe=profile.vibe,
                fallback=profile.fallback,
                stale=stale,
                error=profile.detail or None
            )
            if not stale:
                self.brand_profile = profile
                self.wizard.record_brand_color(profile.hex)
        finally:
            self._finish_branding(sequence)

    def _finish_branding(self, sequence: int):
        if sequence != self._branding_sequence:
            return
        if self.state.phase is Phase.PROCESSING and self.state.operation is Operation.BRANDING:
            self.state = IDLE

    async def wait_for_branding(self):
        """Wait until every pending branding extraction has finished"""
        while self._branding_tasks:
            await asyncio.gather(*list(self._branding_tasks), return_exceptions=True)

    # -- generation ---------------------------------------------------------

    async def generate(self, aspect_ratio: Optional[str] = None) -> Optional[GeneratedFlyer]:
        """
        Generate a flyer from the current draft and slots

        Returns the new flyer, or None when a generation is already running or
        this one failed. Failures leave the status at ERROR with a generic
        message; the draft and slots are not touched, so the user can retry.
        """
        if self.is_generating:
            self.logger.add_warning("Generation already in progress, request ignored")
            return None

        if aspect_ratio is not None:
            self.wizard.set_aspect_ratio(aspect_ratio)
        ratio: AspectRatio = self.wizard.aspect_ratio
        draft = self.wizard.draft
        model_id, _ = self.client.select_image_model(draft.quality)

        self.state = OrchestratorState(Phase.PROCESSING, Operation.GENERATION, stage=STAGE_ANALYZING)
        self.wizard.error = None
        self.logger.log(f"Generating flyer ({ratio.value}, {draft.quality.value})")
        start_time = time.time()
        image_count = 0

        try:
            if not self.client.has_api_key:
                raise GenerationError("No Gemini API key configured")

            product_refs = self.wizard.product_images
            if not product_refs:
                raise GenerationError("At least one product image is required")

            product_assets: List[Asset] = list(
                await asyncio.gather(*(self._load_asset(ref) for ref in product_refs))
            )
            reference_ref = self.wizard.slots[SlotKind.REFERENCE].first
            reference_asset = await self._load_asset(reference_ref) if reference_ref else None
            logo_ref = self.wizard.slots[SlotKind.LOGO].first
            logo_asset = await self._load_asset(logo_ref) if logo_ref else None
            image_count = len(product_assets) + (reference_asset is not None) + (logo_asset is not None)

            self.state = OrchestratorState(Phase.PROCESSING, Operation.GENERATION, stage=STAGE_DESIGNING)
            flyer = await self.client.generate_flyer(
                draft,
                product_assets,
                reference_asset=reference_asset,
                logo_asset=logo_asset,
                aspect_ratio=ratio,
            )
        except FlyerStudioError as e:
            self._fail_generation(model_id, start_time, ratio, image_count, str(e))
            return None
        except Exception as e:
            self._fail_generation(model_id, start_time, ratio, image_count, f"Unexpected error: {e}")
            raise

        self.logger.set_generation_result(
            model_id, time.time() - start_time, True, ratio.value, draft.quality.value,
            image_parts=image_count
        )
        self.flyer = flyer
        self.state = IDLE
        self.wizard.show_result()
        return flyer

    def _fail_generation(self, model_id: str, start_time: float, ratio: AspectRatio, image_count: int, error: str):
        self.logger.set_generation_result(
            model_id, time.time() - start_time, False, ratio.value, self.wizard.draft.quality.value,
            image_parts=image_count, error=error
        )
        self.state = OrchestratorState(Phase.ERROR, message=GENERIC_ERROR_MESSAGE)
        self.wizard.error = GENERIC_ERROR_MESSAGE

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "phase": self.state.phase.value,
            "operation": self.state.operation.value if self.state.operation else None,
            "message": self.state.message,
            "brand_profile": {
                "hex": self.brand_profile.hex,
                "vibe": self.brand_profile.vibe,
            } if self.brand_profile else None,
            "flyer": self.flyer.to_dict() if self.flyer else None,
            "api_key_selected": self.client.has_api_key,
        }
