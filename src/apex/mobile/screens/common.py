"""Building blocks shared by the Apex screens."""

from typing import Callable, Sequence

from kivy.uix.boxlayout import BoxLayout
from kivy.uix.button import Button
from kivy.uix.label import Label
from kivy.uix.popup import Popup
from kivy.uix.scrollview import ScrollView
from kivy.uix.spinner import Spinner

from ...core.models import Bike

DANGER_COLOR = (0.8, 0.2, 0.2, 1)
MUTED_COLOR = (0.7, 0.7, 0.7, 1)


def left_label(text: str, **kwargs) -> Label:
    kwargs.setdefault("halign", "left")
    kwargs.setdefault("valign", "middle")
    label = Label(text=text, **kwargs)
    label.bind(size=label.setter("text_size"))
    return label


def screen_header(title: str, actions: Sequence[tuple[str, Callable]] = ()) -> BoxLayout:
    """Title row with optional buttons on the right."""
    header = BoxLayout(orientation="horizontal", size_hint_y=None, height=50, spacing=8)
    header.add_widget(left_label(title, font_size="20sp", bold=True))
    for text, callback in actions:
        button = Button(text=text, size_hint_x=None, width=120, font_size="14sp")
        button.bind(on_press=lambda instance, cb=callback: cb())
        header.add_widget(button)
    return header


def scrolling_list() -> tuple[ScrollView, BoxLayout]:
    """Scroll view holding a vertical list that grows with its children."""
    scroll_view = ScrollView(size_hint=(1, 1))
    list_layout = BoxLayout(orientation="vertical", size_hint_y=None, spacing=6)
    list_layout.bind(minimum_height=list_layout.setter("height"))
    scroll_view.add_widget(list_layout)
    return scroll_view, list_layout


def empty_message(text: str) -> Label:
    label = Label(text=text, font_size="14sp", halign="center", valign="middle", size_hint_y=None, height=100)
    label.bind(size=label.setter("text_size"))
    return label


def confirm(title: str, message: str, on_confirm: Callable[[], None], action: str = "Delete") -> Popup:
    """Show a confirmation dialog; ``on_confirm`` runs after it closes."""
    content = BoxLayout(orientation="vertical", padding=[20, 10, 20, 10], spacing=10)
    content.add_widget(
        Label(text=message, font_size="14sp", halign="center", valign="middle", size_hint_y=0.6)
    )

    buttons = BoxLayout(orientation="horizontal", size_hint_y=0.4, spacing=10)
    cancel_btn = Button(text="Cancel", font_size="14sp")
    confirm_btn = Button(text=action, font_size="14sp", background_color=DANGER_COLOR)
    buttons.add_widget(cancel_btn)
    buttons.add_widget(confirm_btn)
    content.add_widget(buttons)

    popup = Popup(title=title, content=content, size_hint=(0.8, 0.4), auto_dismiss=False)

    def _confirmed(instance):
        popup.dismiss()
        on_confirm()

    cancel_btn.bind(on_press=popup.dismiss)
    confirm_btn.bind(on_press=_confirmed)
    popup.open()
    return popup


class BikeSpinner(Spinner):
    """Drop-down of the rider's bikes."""

    def __init__(self, on_select: Callable[[Bike | None], None] | None = None, **kwargs):
        kwargs.setdefault("text", "Select bike")
        kwargs.setdefault("size_hint_y", None)
        kwargs.setdefault("height", 44)
        super().__init__(**kwargs)
        self._bikes: dict[str, Bike] = {}
        self._on_select = on_select
        self.bind(text=self._on_text)

    def set_bikes(self, bikes: Sequence[Bike], selected_id: str | None = None) -> None:
        current = self.selected
        keep = selected_id or (current.id if current else None)
        self._bikes = {bike.display_name: bike for bike in bikes}
        self.values = list(self._bikes)
        match = next((name for name, bike in self._bikes.items() if bike.id == keep), None)
        if match is None and self.values:
            match = self.values[0]
        self.text = match or "No bikes"

    @property
    def selected(self) -> Bike | None:
        return self._bikes.get(self.text)

    def _on_text(self, instance, value):
        if self._on_select:
            self._on_select(self._bikes.get(value))
