"""
Refuel form popup.

Any two of litres, price per litre and total cost fill in the third as the
rider types. Validation messages appear under each field on submit.
"""

import logging
from typing import Callable

from kivy.uix.boxlayout import BoxLayout
from kivy.uix.button import Button
from kivy.uix.checkbox import CheckBox
from kivy.uix.label import Label
from kivy.uix.popup import Popup
from kivy.uix.textinput import TextInput

from ...analysis.fuel import FuelEntry
from ...core.errors import ValidationError, friendly_error_message

logger = logging.getLogger(__name__)

ERROR_COLOR = (1.0, 0.231, 0.188, 1.0)
DERIVED_FIELDS = ("litres", "price_per_litre", "total_cost")


class FormField(BoxLayout):
    """Label, text input and error line."""

    def __init__(self, label: str, text: str = "", input_filter: str | None = "float", **kwargs):
        kwargs.setdefault("orientation", "vertical")
        kwargs.setdefault("size_hint_y", None)
        kwargs.setdefault("height", 88)
        super().__init__(**kwargs)

        title = Label(text=label, font_size="13sp", halign="left", valign="middle", size_hint_y=0.3)
        title.bind(size=title.setter("text_size"))
        self.add_widget(title)

        self.input = TextInput(text=text, multiline=False, input_filter=input_filter, size_hint_y=0.45)
        self.add_widget(self.input)

        self.error = Label(text="", font_size="11sp", color=ERROR_COLOR, halign="left", size_hint_y=0.25)
        self.error.bind(size=self.error.setter("text_size"))
        self.add_widget(self.error)

    @property
    def text(self) -> str:
        return self.input.text

    @text.setter
    def text(self, value: str) -> None:
        self.input.text = value


class RefuelPopup(Popup):
    """
    Add or edit a fuel log.

    Usage:
        popup = RefuelPopup(FuelEntry.for_bike(bike), on_submit=lambda e: service.create(bike.id, e))
        popup.open()
    """

    def __init__(
        self,
        entry: FuelEntry,
        on_submit: Callable[[FuelEntry], object],
        editing: bool = False,
        **kwargs,
    ):
        kwargs.setdefault("title", "Edit Refuel" if editing else "Add Refuel")
        kwargs.setdefault("size_hint", (0.92, 0.9))
        kwargs.setdefault("auto_dismiss", False)
        super().__init__(**kwargs)

        self.on_submit = on_submit
        self._derived: str | None = entry.derived
        self._updating = False

        content = BoxLayout(orientation="vertical", padding=[12, 8, 12, 8], spacing=4)

        self.fields = {
            "odometer": FormField("Odometer (km)", str(entry.odometer), input_filter="int"),
            "litres": FormField("Litres", str(entry.litres)),
            "price_per_litre": FormField("Price per litre", str(entry.price_per_litre)),
            "total_cost": FormField("Total cost", str(entry.total_cost)),
            "date": FormField("Date (YYYY-MM-DD)", str(entry.date), input_filter=None),
        }
        for name, field in self.fields.items():
            content.add_widget(field)
            if name in DERIVED_FIELDS:
                field.input.bind(text=lambda instance, value, name=name: self._on_amount_changed(name))

        full_tank = BoxLayout(orientation="horizontal", size_hint_y=None, height=40)
        self.full_tank = CheckBox(active=bool(entry.is_full_tank), size_hint_x=0.2)
        full_tank.add_widget(self.full_tank)
        full_tank.add_widget(Label(text="Full tank", halign="left"))
        content.add_widget(full_tank)

        self.status_label = Label(text="", font_size="12sp", color=ERROR_COLOR, size_hint_y=None, height=30)
        content.add_widget(self.status_label)

        buttons = BoxLayout(orientation="horizontal", size_hint_y=None, height=50, spacing=10)
        cancel_btn = Button(text="Cancel")
        cancel_btn.bind(on_press=lambda x: self.dismiss())
        save_btn = Button(text="Save", background_color=(0.0, 0.8, 0.2, 1))
        save_btn.bind(on_press=self._on_save)
        buttons.add_widget(cancel_btn)
        buttons.add_widget(save_btn)
        content.add_widget(buttons)

        self.content = content

    def entry(self) -> FuelEntry:
        """Current form state as a FuelEntry."""
        return FuelEntry(
            odometer=self.fields["odometer"].text,
            litres=self.fields["litres"].text,
            price_per_litre=self.fields["price_per_litre"].text,
            total_cost=self.fields["total_cost"].text,
            is_full_tank=self.full_tank.active,
            date=self.fields["date"].text,
            derived=self._derived,
        )

    def _set_text(self, name: str, value: str) -> None:
        self._updating = True
        try:
            self.fields[name].text = value
        finally:
            self._updating = False

    def _on_amount_changed(self, name: str) -> None:
        if self._updating:
            return
        # Editing one of the sources invalidates the value derived from them.
        if self._derived and self._derived != name:
            self._set_text(self._derived, "")
            self._derived = None
        elif self._derived == name:
            self._derived = None

        entry = self.entry()
        derived = entry.derive()
        if derived:
            self._set_text(derived, getattr(entry, derived))
            self._derived = derived

    def _show_errors(self, errors: dict[str, str]) -> None:
        for name, field in self.fields.items():
            field.error.text = errors.get(name, "")

    def _on_save(self, instance):
        entry = self.entry()
        entry.derive()
        errors = entry.validate()
        self._show_errors(errors)
        if errors:
            self.status_label.text = "Please fix the errors below"
            return

        try:
            self.on_submit(entry)
        except ValidationError as e:
            self._show_errors(e.field_errors)
            self.status_label.text = str(e)
            return
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to save fuel log: {e}")
            self.status_label.text = friendly_error_message(e)
            return
        self.dismiss()
