"""
Garage screen for Apex.

Lists the rider's bikes with odometer and fuel economy; add, edit odometer
and delete.
"""

import logging
from typing import Callable

from kivy.uix.boxlayout import BoxLayout
from kivy.uix.button import Button
from kivy.uix.label import Label
from kivy.uix.popup import Popup
from kivy.uix.screenmanager import Screen

from ...core.errors import BikeInUseError, ValidationError, friendly_error_message
from ...core.models import Bike
from ...core.toasts import ToastLevel
from ...services.container import Services
from ...utils.formatting import to_title_case
from ..widgets.refuel_popup import ERROR_COLOR, FormField
from .common import DANGER_COLOR, MUTED_COLOR, confirm, empty_message, left_label, screen_header, scrolling_list

logger = logging.getLogger(__name__)


def bike_details(bike: Bike) -> str:
    details = [f"{bike.current_odo:,} km"]
    if bike.avg_mileage is not None:
        details.append(f"{bike.avg_mileage:.1f} km/L")
    if bike.last_fuel_price is not None:
        details.append(f"fuel {bike.last_fuel_price:.2f}/L")
    return " | ".join(details)


class BikeItem(BoxLayout):
    """Single bike row."""

    def __init__(
        self,
        bike: Bike,
        on_edit: Callable[[Bike], None] | None = None,
        on_delete: Callable[[Bike], None] | None = None,
        **kwargs,
    ):
        kwargs.setdefault("orientation", "horizontal")
        kwargs.setdefault("size_hint_y", None)
        kwargs.setdefault("height", 80)
        kwargs.setdefault("padding", [10, 5, 10, 5])
        kwargs.setdefault("spacing", 10)
        super().__init__(**kwargs)

        self.bike = bike

        info = BoxLayout(orientation="vertical", size_hint=(0.6, 1))
        title = bike.display_name
        if bike.year:
            title += f" ({bike.year})"
        info.add_widget(left_label(title, font_size="15sp", bold=True, size_hint_y=0.5))
        info.add_widget(left_label(bike_details(bike), font_size="12sp", color=MUTED_COLOR, size_hint_y=0.5))
        self.add_widget(info)

        buttons = BoxLayout(orientation="horizontal", size_hint=(0.4, 1), spacing=5)
        edit_btn = Button(text="Odometer", font_size="12sp")
        edit_btn.bind(on_press=lambda x: on_edit and on_edit(bike))
        buttons.add_widget(edit_btn)
        delete_btn = Button(text="Delete", font_size="12sp", background_color=DANGER_COLOR)
        delete_btn.bind(on_press=lambda x: on_delete and on_delete(bike))
        buttons.add_widget(delete_btn)
        self.add_widget(buttons)


class BikeFormPopup(Popup):
    """Add-bike form. ``on_submit`` receives the field values."""

    FIELDS = (
        ("make", "Make", None),
        ("model", "Model", None),
        ("year", "Year", "int"),
        ("current_odo", "Odometer (km)", "int"),
        ("nick_name", "Nickname (optional)", None),
    )

    def __init__(self, on_submit: Callable[[dict], object], **kwargs):
        kwargs.setdefault("title", "Add Bike")
        kwargs.setdefault("size_hint", (0.92, 0.85))
        kwargs.setdefault("auto_dismiss", False)
        super().__init__(**kwargs)
        self.on_submit = on_submit

        content = BoxLayout(orientation="vertical", padding=[12, 8, 12, 8], spacing=4)
        self.fields = {}
        for name, label, input_filter in self.FIELDS:
            field = FormField(label, input_filter=input_filter)
            self.fields[name] = field
            content.add_widget(field)

        self.status_label = Label(text="", font_size="12sp", color=ERROR_COLOR, size_hint_y=None, height=30)
        content.add_widget(self.status_label)

        buttons = BoxLayout(orientation="horizontal", size_hint_y=None, height=50, spacing=10)
        cancel_btn = Button(text="Cancel")
        cancel_btn.bind(on_press=lambda x: self.dismiss())
        save_btn = Button(text="Add Bike", background_color=(0.0, 0.8, 0.2, 1))
        save_btn.bind(on_press=self._on_save)
        buttons.add_widget(cancel_btn)
        buttons.add_widget(save_btn)
        content.add_widget(buttons)
        self.content = content

    def _on_save(self, instance):
        values = {name: field.text for name, field in self.fields.items()}
        values["make"] = to_title_case(values["make"])
        values["model"] = to_title_case(values["model"])
        for field in self.fields.values():
            field.error.text = ""
        try:
            self.on_submit(values)
        except ValidationError as e:
            for name, message in e.field_errors.items():
                if name in self.fields:
                    self.fields[name].error.text = message
            self.status_label.text = str(e)
            return
        except Exception as e:  # noqa: BLE001
            self.status_label.text = friendly_error_message(e)
            return
        self.dismiss()


class OdometerPopup(Popup):
    """Single-field odometer update."""

    def __init__(self, bike: Bike, on_submit: Callable[[int], object], **kwargs):
        kwargs.setdefault("title", f"Odometer - {bike.display_name}")
        kwargs.setdefault("size_hint", (0.85, 0.4))
        super().__init__(**kwargs)
        self.on_submit = on_submit

        content = BoxLayout(orientation="vertical", padding=[12, 8, 12, 8], spacing=8)
        self.field = FormField("Odometer (km)", str(bike.current_odo), input_filter="int")
        content.add_widget(self.field)
        save_btn = Button(text="Save", size_hint_y=None, height=50)
        save_btn.bind(on_press=self._on_save)
        content.add_widget(save_btn)
        self.content = content

    def _on_save(self, instance):
        try:
            value = int(self.field.text)
        except ValueError:
            self.field.error.text = "Odometer must be a number"
            return
        if value < 0:
            self.field.error.text = "Odometer cannot be negative"
            return
        try:
            self.on_submit(value)
        except Exception as e:  # noqa: BLE001
            self.field.error.text = friendly_error_message(e)
            return
        self.dismiss()


class GarageScreen(Screen):
    """
    Garage: the rider's bikes.

    Features:
    - List bikes, newest first, with odometer and fuel economy
    - Add a bike (default maintenance schedules are created with it)
    - Update odometer
    - Delete (refused while rides reference the bike)
    """

    def __init__(self, services: Services, **kwargs):
        kwargs.setdefault("name", "garage")
        super().__init__(**kwargs)
        self.services = services

        root = BoxLayout(orientation="vertical", padding=[10, 10, 10, 10], spacing=10)
        root.add_widget(screen_header("Garage", [("Add Bike", self._on_add)]))
        scroll_view, self.list_layout = scrolling_list()
        root.add_widget(scroll_view)
        self.add_widget(root)

    def on_pre_enter(self, *args):
        self.refresh_list()

    def refresh_list(self):
        self.list_layout.clear_widgets()
        try:
            bikes = self.services.bikes.list()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to load bikes: {e}")
            self.list_layout.add_widget(empty_message(friendly_error_message(e)))
            return

        if not bikes:
            self.list_layout.add_widget(empty_message("Your garage is empty.\nAdd a bike to start riding."))
            return

        for bike in bikes:
            self.list_layout.add_widget(BikeItem(bike, on_edit=self._on_edit, on_delete=self._confirm_delete))
        logger.info(f"Loaded {len(bikes)} bikes")

    def _on_add(self):
        def submit(values: dict):
            extra = {k: v for k, v in values.items() if k not in ("make", "model", "current_odo") and v}
            self.services.bikes.create(values["make"], values["model"], values["current_odo"] or 0, **extra)
            self.refresh_list()

        BikeFormPopup(on_submit=submit).open()

    def _on_edit(self, bike: Bike):
        def submit(value: int):
            self.services.bikes.update_odometer(bike.id, value)
            self.refresh_list()

        OdometerPopup(bike, on_submit=submit).open()

    def _confirm_delete(self, bike: Bike):
        confirm(
            "Delete Bike",
            f"Delete {bike.display_name}?\nFuel logs and maintenance history go with it.",
            lambda: self._delete_bike(bike),
        )

    def _delete_bike(self, bike: Bike):
        try:
            self.services.bikes.delete(bike.id)
        except BikeInUseError as e:
            logger.warning(f"Bike {bike.id} not deleted: {e}")
            self.services.toast(ToastLevel.ERROR, str(e))
            return
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to delete bike: {e}")
            self.services.toast(ToastLevel.ERROR, friendly_error_message(e, "Failed to delete bike"))
            return
        self.refresh_list()
