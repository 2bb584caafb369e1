"""
Rides screen for Apex.

Lists recorded rides with distance, duration and lean; exports GPX, shares
a stats card, renames and deletes.
"""

import logging
from pathlib import Path
from typing import Callable

from kivy.uix.boxlayout import BoxLayout
from kivy.uix.button import Button
from kivy.uix.popup import Popup
from kivy.uix.screenmanager import Screen
from kivy.uix.textinput import TextInput

from ...core.errors import ExportError, friendly_error_message
from ...core.models import Bike, Ride
from ...core.toasts import ToastLevel
from ...services.container import Services
from ...services.gpx import export_gpx
from ...services.share import save_share_card, share_bike_name, share_file
from ...utils.formatting import format_duration, format_short_date
from .common import DANGER_COLOR, MUTED_COLOR, confirm, empty_message, left_label, screen_header, scrolling_list

logger = logging.getLogger(__name__)


def ride_details(ride: Ride) -> str:
    details = [
        format_short_date(ride.start_time, use_relative=True),
        f"{ride.distance_km:.1f} km",
        format_duration(ride.start_time, ride.end_time),
    ]
    if ride.max_lean > 0:
        details.append(f"{ride.max_lean:.0f}° lean")
    return " | ".join(details)


class RideItem(BoxLayout):
    """Single ride row."""

    def __init__(
        self,
        ride: Ride,
        bike: Bike | None,
        actions: dict[str, Callable[[Ride], None]],
        **kwargs,
    ):
        kwargs.setdefault("orientation", "vertical")
        kwargs.setdefault("size_hint_y", None)
        kwargs.setdefault("height", 110)
        kwargs.setdefault("padding", [10, 5, 10, 5])
        kwargs.setdefault("spacing", 4)
        super().__init__(**kwargs)

        self.ride = ride
        title = ride.ride_name or share_bike_name(bike)
        self.add_widget(left_label(title, font_size="15sp", bold=True, size_hint_y=0.3))
        self.add_widget(left_label(ride_details(ride), font_size="12sp", color=MUTED_COLOR, size_hint_y=0.3))

        buttons = BoxLayout(orientation="horizontal", size_hint_y=0.4, spacing=5)
        for text, callback in actions.items():
            button = Button(
                text=text,
                font_size="12sp",
                background_color=DANGER_COLOR if text == "Delete" else (1, 1, 1, 1),
            )
            button.bind(on_press=lambda x, cb=callback: cb(ride))
            buttons.add_widget(button)
        self.add_widget(buttons)


class RenamePopup(Popup):
    def __init__(self, ride: Ride, on_submit: Callable[[str, str], object], **kwargs):
        kwargs.setdefault("title", "Edit Ride")
        kwargs.setdefault("size_hint", (0.9, 0.5))
        super().__init__(**kwargs)

        content = BoxLayout(orientation="vertical", padding=[12, 8, 12, 8], spacing=8)
        self.name_input = TextInput(text=ride.ride_name or "", hint_text="Ride name", multiline=False, size_hint_y=None, height=44)
        self.notes_input = TextInput(text=ride.notes or "", hint_text="Notes")
        content.add_widget(self.name_input)
        content.add_widget(self.notes_input)
        save_btn = Button(text="Save", size_hint_y=None, height=50)
        save_btn.bind(on_press=lambda x: self._save(on_submit))
        content.add_widget(save_btn)
        self.content = content

    def _save(self, on_submit):
        try:
            on_submit(self.name_input.text, self.notes_input.text)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to update ride: {e}")
            return
        self.dismiss()


class RidesScreen(Screen):
    """
    Ride history.

    Features:
    - Newest first, with date, distance, duration and max lean
    - Export GPX to the exports directory
    - Share a 1080x1080 stats card
    - Rename / add notes, delete
    """

    def __init__(self, services: Services, exports_dir: Path, platform_type: str = "desktop", **kwargs):
        kwargs.setdefault("name", "rides")
        super().__init__(**kwargs)
        self.services = services
        self.exports_dir = Path(exports_dir)
        self.platform_type = platform_type
        self._bikes: dict[str, Bike] = {}

        root = BoxLayout(orientation="vertical", padding=[10, 10, 10, 10], spacing=10)
        root.add_widget(screen_header("Rides", [("Refresh", lambda: self.refresh_list(refresh=True))]))
        scroll_view, self.list_layout = scrolling_list()
        root.add_widget(scroll_view)
        self.add_widget(root)

    def on_pre_enter(self, *args):
        self.refresh_list()

    def refresh_list(self, refresh: bool = False):
        self.list_layout.clear_widgets()
        try:
            self._bikes = {bike.id: bike for bike in self.services.bikes.list(refresh)}
            rides = self.services.rides.list(refresh=refresh)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to load rides: {e}")
            self.list_layout.add_widget(empty_message(friendly_error_message(e)))
            return

        if not rides:
            self.list_layout.add_widget(empty_message("No rides yet.\nTap START on the dashboard to record one."))
            return

        actions = {
            "GPX": self._export_gpx,
            "Share": self._share,
            "Edit": self._rename,
            "Delete": self._confirm_delete,
        }
        for ride in rides:
            self.list_layout.add_widget(RideItem(ride, self._bikes.get(ride.bike_id), actions))
        logger.info(f"Loaded {len(rides)} rides")

    def _export_gpx(self, ride: Ride):
        try:
            path = export_gpx(self.services.rides, ride.id, self.exports_dir)
        except ExportError as e:
            self.services.toast(ToastLevel.ERROR, str(e))
            return
        except Exception as e:  # noqa: BLE001
            logger.error(f"GPX export failed: {e}")
            self.services.toast(ToastLevel.ERROR, friendly_error_message(e, "Failed to export GPX"))
            return
        self.services.toast(ToastLevel.SUCCESS, f"GPX saved: {path.name}")
        if self.platform_type == "android":
            share_file(path, self.platform_type)

    def _share(self, ride: Ride):
        try:
            path = save_share_card(ride, self._bikes.get(ride.bike_id), self.exports_dir)
            method = share_file(path, self.platform_type)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Share failed: {e}")
            self.services.toast(ToastLevel.ERROR, "Failed to share ride")
            return
        if method == "open":
            self.services.toast(ToastLevel.SUCCESS, f"Image saved: {path.name}")

    def _rename(self, ride: Ride):
        def submit(name: str, notes: str):
            self.services.rides.update(ride.id, name, notes)
            self.refresh_list()

        RenamePopup(ride, on_submit=submit).open()

    def _confirm_delete(self, ride: Ride):
        confirm("Delete Ride", "Delete this ride?\nThe GPS trace cannot be recovered.", lambda: self._delete(ride))

    def _delete(self, ride: Ride):
        try:
            self.services.rides.delete(ride.id)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to delete ride: {e}")
            self.services.toast(ToastLevel.ERROR, friendly_error_message(e, "Failed to delete ride"))
            return
        self.refresh_list()
