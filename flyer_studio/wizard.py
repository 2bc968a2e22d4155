"""
Wizard Controller for Flyer Studio

Owns the current step, the RestaurantInfo draft and the three image slots
(product, reference, logo). Replacing the logo raises an explicit event that
the orchestrator subscribes to; the controller itself never calls the Gemini
API.

Steps:
  1 Producto     - product photo (required)
  2 Identidad    - logo (required), brand color comes from branding extraction
  3 Inspiración  - optional reference: uploaded image or catalog template
  4 Marketing    - name, product, price/promo, phone, CTA
  5 Publicación  - format selection and generation
  6 Resultado    - generated flyer, entered only after a successful generation
"""

from enum import Enum
from typing import Optional, List, Dict, Any, Callable, Iterable

from .errors import ValidationError
from .image_utils import file_to_data_uri, DEFAULT_MAX_IMAGE_BYTES
from .models import RestaurantInfo, AspectRatio, TargetAudience, UsageContext, Quality

FIRST_STEP = 1
LAST_INPUT_STEP = 5
RESULT_STEP = 6

STEPS = {
    1: ("Producto", "Foto del plato"),
    2: ("Identidad", "Logo y Colores"),
    3: ("Inspiración", "Estilo visual"),
    4: ("Marketing", "Datos del flyer"),
    5: ("Publicación", "Elegir formato"),
    6: ("Resultado", "Tu flyer"),
}

ENUM_FIELDS = {
    "target_audience": TargetAudience,
    "context": UsageContext,
    "quality": Quality,
}

TEXT_FIELDS = ("name", "type", "product", "price_promo", "phone", "cta_text", "logo", "brand_color")

REQUIRED_MARKETING_FIELDS = ("name", "product", "price_promo")

LogoListener = Callable[[str], None]


class SlotKind(str, Enum):
    PRODUCT = "product"
    REFERENCE = "reference"
    LOGO = "logo"


class ImageSlot:
    """Bounded sequence of image references (data URIs or HTTP(S) URLs)"""

    def __init__(self, max_images: int = 1):
        if max_images < 1:
            raise ValueError("max_images must be at least 1")
        self.max_images = max_images
        self._items: List[str] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    @property
    def items(self) -> List[str]:
        return list(self._items)

    @property
    def first(self) -> Optional[str]:
        return self._items[0] if self._items else None

    def add(self, refs: Iterable[str]):
        """Append, keeping only the most recent max_images entries"""
        self._items = (self._items + list(refs))[-self.max_images:]

    def set(self, refs: Iterable[str]):
        self._items = list(refs)[-self.max_images:]

    def remove(self, index: int):
        if not 0 <= index < len(self._items):
            raise ValidationError("La imagen seleccionada no existe.")
        del self._items[index]

    def clear(self):
        self._items = []


class WizardController:
    """Linear wizard state: step, draft, image slots and the logo-replaced event"""

    def __init__(
        self,
        draft: Optional[RestaurantInfo] = None,
        template_catalog: Optional[List[str]] = None,
        max_images: int = 1,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES
    ):
        self.step = FIRST_STEP
        self.draft = draft or RestaurantInfo()
        self.slots: Dict[SlotKind, ImageSlot] = {kind: ImageSlot(max_images) for kind in SlotKind}
        self.aspect_ratio = AspectRatio.STORY
        self.error: Optional[str] = None
        self.template_catalog = list(template_catalog or [])
        self.max_image_bytes = max_image_bytes
        self._logo_listeners: List[LogoListener] = []

    @property
    def product_images(self) -> List[str]:
        return self.slots[SlotKind.PRODUCT].items

    @property
    def reference_images(self) -> List[str]:
        return self.slots[SlotKind.REFERENCE].items

    @property
    def logo_images(self) -> List[str]:
        return self.slots[SlotKind.LOGO].items

    def add_logo_listener(self, listener: LogoListener):
        self._logo_listeners.append(listener)

    # -- navigation ---------------------------------------------------------

    def _fail(self, message: str, field: Optional[str] = None):
        self.error = message
        raise ValidationError(message, field=field)

    def advance(self) -> int:
        """
        Move to the next step if the current one is complete

        Raises:
            ValidationError: precondition not met, the step does not change
        """
        if self.step == 1 and not self.product_images:
            self._fail("Necesito la foto de tu producto para empezar.", field="product_images")
        if self.step == 2 and not self.logo_images:
            self._fail("Sube tu logo para que el diseño tenga tus colores.", field="logo_images")
        if self.step == 4:
            for key in REQUIRED_MARKETING_FIELDS:
                if not str(getattr(self.draft, key) or "").strip():
                    self._fail("Completa el nombre, el producto y la oferta para continuar.", field=key)
        if self.step >= LAST_INPUT_STEP:
            self._fail("Genera tu flyer para continuar.")

        self.error = None
        self.step += 1
        return self.step

    def retreat(self) -> int:
        self.error = None
        self.step = max(FIRST_STEP, self.step - 1)
        return self.step

    def go_to(self, step: int) -> int:
        """Jump back to an already visited step"""
        if not FIRST_STEP <= step <= self.step:
            self._fail("Solo puedes volver a un paso anterior.")
        self.error = None
        self.step = step
        return self.step

    def show_result(self):
        self.error = None
        self.step = RESULT_STEP

    # -- draft --------------------------------------------------------------

    def update_field(self, key: str, value: Any):
        """Merge one field into the draft"""
        if key not in RestaurantInfo.field_names():
            raise ValidationError(f"Campo desconocido: {key}", field=key)

        enum_type = ENUM_FIELDS.get(key)
        if enum_type is not None:
            try:
                value = enum_type(value)
            except ValueError:
                raise ValidationError(f"Valor no válido para {key}: {value}", field=key) from None
        elif key in TEXT_FIELDS and value is not None:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            elif not isinstance(value, str):
                raise ValidationError(f"Valor no válido para {key}: se esperaba texto", field=key)

        setattr(self.draft, key, value)

    def update_fields(self, values: Dict[str, Any]):
        for key, value in values.items():
            self.update_field(key, value)

    def set_aspect_ratio(self, value: str):
        try:
            self.aspect_ratio = AspectRatio(value)
        except ValueError:
            raise ValidationError(f"Formato no válido: {value}", field="aspect_ratio") from None

    def record_logo(self, ref: str):
        self.draft.logo = ref

    def record_brand_color(self, hex_color: str):
        self.draft.brand_color = hex_color

    # -- image slots --------------------------------------------------------

    def _mutate_slot(self, kind: SlotKind, mutate: Callable[[ImageSlot], None]):
        kind = SlotKind(kind)
        slot = self.slots[kind]
        previous = slot.first
        mutate(slot)
        if kind is SlotKind.LOGO:
            current = slot.first
            if current is not None and current != previous and current != self.draft.logo:
                for listener in list(self._logo_listeners):
                    listener(current)

    def add_images(self, kind: SlotKind, refs: Iterable[str]):
        refs = list(refs)
        self._mutate_slot(kind, lambda slot: slot.add(refs))

    def set_images(self, kind: SlotKind, refs: Iterable[str]):
        refs = list(refs)
        self._mutate_slot(kind, lambda slot: slot.set(refs))

    def remove_image(self, kind: SlotKind, index: int):
        self._mutate_slot(kind, lambda slot: slot.remove(index))

    def upload_image(self, kind: SlotKind, source, mime_type: Optional[str] = None) -> str:
        """
        Read an uploaded file into a data URI and add it to a slot

        Raises:
            AssetConversionError: the upload is unreadable or not an image
        """
        ref = file_to_data_uri(source, mime_type=mime_type, max_bytes=self.max_image_bytes)
        self.add_images(kind, [ref])
        return ref

    def select_template(self, url: str):
        """Use a catalog template as the reference, replacing any uploaded reference"""
        self.set_images(SlotKind.REFERENCE, [url])

    def clear_template(self):
        self.set_images(SlotKind.REFERENCE, [])

    # -- views --------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """JSON-friendly view of the wizard state"""
        label, description = STEPS[self.step]
        reference = self.slots[SlotKind.REFERENCE].first
        draft = self.draft.to_dict()
        # data URIs are too large for a status payload
        draft["logo"] = draft["logo"] is not None
        return {
            "step": self.step,
            "step_label": label,
            "step_description": description,
            "draft": draft,
            "images": {kind.value: len(slot) for kind, slot in self.slots.items()},
            "reference_template": reference if reference in self.template_catalog else None,
            "aspect_ratio": self.aspect_ratio.value,
            "error": self.error,
        }
