"""
Service screen for Apex.

Per-bike maintenance: part health cards with "serviced" recording, the fuel
log with mileage, and the general service log.
"""

import logging
from typing import Callable

from kivy.uix.boxlayout import BoxLayout
from kivy.uix.button import Button
from kivy.uix.label import Label
from kivy.uix.popup import Popup
from kivy.uix.screenmanager import Screen
from kivy.uix.togglebutton import ToggleButton

from ...analysis.fuel import FuelEntry, calculate_mileage
from ...analysis.health import calculate_health
from ...core.errors import ValidationError, friendly_error_message
from ...core.models import Bike, FuelLog, MaintenanceLog, MaintenanceSchedule
from ...services.container import Services
from ...utils.formatting import format_short_date
from ..widgets.health_card import HealthCard
from ..widgets.refuel_popup import ERROR_COLOR, FormField, RefuelPopup
from .common import DANGER_COLOR, MUTED_COLOR, BikeSpinner, confirm, empty_message, left_label, scrolling_list

logger = logging.getLogger(__name__)

TABS = ("Health", "Fuel", "Logs")


class FormPopup(Popup):
    """
    Generic form of FormFields.

    ``on_submit`` receives a dict of field values; ValidationError field
    messages are shown under the matching inputs.
    """

    def __init__(
        self,
        title: str,
        fields: list[tuple[str, str, str | None, str]],
        on_submit: Callable[[dict], object],
        submit_text: str = "Save",
        **kwargs,
    ):
        kwargs.setdefault("size_hint", (0.92, 0.8))
        kwargs.setdefault("auto_dismiss", False)
        super().__init__(title=title, **kwargs)
        self.on_submit = on_submit

        content = BoxLayout(orientation="vertical", padding=[12, 8, 12, 8], spacing=4)
        self.fields: dict[str, FormField] = {}
        for name, label, input_filter, initial in fields:
            field = FormField(label, initial, input_filter=input_filter)
            self.fields[name] = field
            content.add_widget(field)

        self.status_label = Label(text="", font_size="12sp", color=ERROR_COLOR, size_hint_y=None, height=30)
        content.add_widget(self.status_label)

        buttons = BoxLayout(orientation="horizontal", size_hint_y=None, height=50, spacing=10)
        cancel_btn = Button(text="Cancel")
        cancel_btn.bind(on_press=lambda x: self.dismiss())
        save_btn = Button(text=submit_text, background_color=(0.0, 0.8, 0.2, 1))
        save_btn.bind(on_press=self._on_save)
        buttons.add_widget(cancel_btn)
        buttons.add_widget(save_btn)
        content.add_widget(buttons)
        self.content = content

    def _on_save(self, instance):
        for field in self.fields.values():
            field.error.text = ""
        try:
            self.on_submit({name: field.text.strip() for name, field in self.fields.items()})
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


def _row(title: str, details: str, actions: list[tuple[str, Callable[[], None]]]) -> BoxLayout:
    row = BoxLayout(orientation="horizontal", size_hint_y=None, height=64, padding=[10, 4, 10, 4], spacing=8)
    info = BoxLayout(orientation="vertical")
    info.add_widget(left_label(title, font_size="14sp", bold=True))
    info.add_widget(left_label(details, font_size="12sp", color=MUTED_COLOR))
    row.add_widget(info)
    for text, callback in actions:
        button = Button(
            text=text,
            size_hint_x=None,
            width=80,
            font_size="12sp",
            background_color=DANGER_COLOR if text == "Delete" else (1, 1, 1, 1),
        )
        button.bind(on_press=lambda x, cb=callback: cb())
        row.add_widget(button)
    return row


class ServiceScreen(Screen):
    """
    Maintenance and fuel for the selected bike.

    Layout:
    ┌─────────────────────────────────────┐
    │  [Bike spinner               v]     │
    │  [Health] [Fuel] [Logs]   [+ Add]   │
    │  ...cards / rows...                 │
    └─────────────────────────────────────┘
    """

    def __init__(self, services: Services, **kwargs):
        kwargs.setdefault("name", "service")
        super().__init__(**kwargs)
        self.services = services
        self.tab = TABS[0]

        root = BoxLayout(orientation="vertical", padding=[10, 10, 10, 10], spacing=8)
        self.bike_spinner = BikeSpinner(on_select=lambda bike: self.refresh_list())
        root.add_widget(self.bike_spinner)

        tabs = BoxLayout(orientation="horizontal", size_hint_y=None, height=44, spacing=6)
        for name in TABS:
            button = ToggleButton(text=name, group="service_tabs", state="down" if name == self.tab else "normal")
            button.bind(on_press=lambda x, name=name: self._select_tab(name))
            tabs.add_widget(button)
        self.add_btn = Button(text="+ Add", size_hint_x=0.6)
        self.add_btn.bind(on_press=self._on_add)
        tabs.add_widget(self.add_btn)
        root.add_widget(tabs)

        self.summary_label = left_label("", font_size="13sp", color=MUTED_COLOR, size_hint_y=None, height=28)
        root.add_widget(self.summary_label)

        scroll_view, self.list_layout = scrolling_list()
        root.add_widget(scroll_view)
        self.add_widget(root)

    @property
    def bike(self) -> Bike | None:
        return self.bike_spinner.selected

    def on_pre_enter(self, *args):
        try:
            bikes = self.services.bikes.list()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to load bikes: {e}")
            bikes = []
        self.bike_spinner.set_bikes(bikes)
        self.refresh_list()

    def _select_tab(self, name: str):
        self.tab = name
        self.refresh_list()

    def refresh_list(self):
        self.list_layout.clear_widgets()
        self.summary_label.text = ""
        bike = self.bike
        if bike is None:
            self.list_layout.add_widget(empty_message("Add a bike to track its maintenance."))
            return
        try:
            if self.tab == "Health":
                self._show_health(bike)
            elif self.tab == "Fuel":
                self._show_fuel(bike)
            else:
                self._show_logs(bike)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Failed to load {self.tab.lower()} for {bike.id}: {e}")
            self.list_layout.add_widget(empty_message(friendly_error_message(e)))

    # Health

    def _show_health(self, bike: Bike):
        schedules = self.services.schedules.list(bike.id)
        if not schedules:
            self.list_layout.add_widget(empty_message("No maintenance schedules."))
            return
        reports = [(s, calculate_health(s, bike.current_odo)) for s in schedules]
        due = sum(1 for _, report in reports if report.needs_service)
        self.summary_label.text = f"{due} part(s) due for service" if due else "All parts healthy"
        for schedule, report in sorted(reports, key=lambda pair: pair[1].health):
            self.list_layout.add_widget(HealthCard(schedule, report, on_complete=self._complete_service))

    def _complete_service(self, schedule: MaintenanceSchedule):
        bike = self.bike

        def submit(values: dict):
            self.services.schedules.complete_service(
                schedule.id,
                bike.id,
                values["service_odo"] or None,
                cost=values["cost"] or None,
                notes=values["notes"] or None,
            )
            self.refresh_list()

        FormPopup(
            f"Complete Service - {schedule.part_name}",
            [
                ("service_odo", "Odometer at service (km)", "int", str(bike.current_odo)),
                ("cost", "Cost (optional)", "float", ""),
                ("notes", "Notes (optional)", None, ""),
            ],
            submit,
            submit_text="Complete",
        ).open()

    # Fuel

    def _show_fuel(self, bike: Bike):
        logs = self.services.fuel_logs.list(bike.id)
        mileage = calculate_mileage(logs)
        self.summary_label.text = (
            f"Mileage: {mileage:.2f} km/L" if mileage is not None else "Mileage: needs two full-tank fills"
        )
        if not logs:
            self.list_layout.add_widget(empty_message("No fuel logs yet."))
            return
        for log in logs:
            self.list_layout.add_widget(self._fuel_row(log))

    def _fuel_row(self, log: FuelLog) -> BoxLayout:
        title = f"{log.litres:.2f} L @ {log.price_per_litre:.2f} = {log.total_cost:.2f}"
        details = f"{format_short_date(log.date)} | {log.odometer:,} km" + (" | full" if log.is_full_tank else "")
        return _row(
            title,
            details,
            [("Edit", lambda: self._edit_fuel(log)), ("Delete", lambda: self._delete_fuel(log))],
        )

    def _add_fuel(self, bike: Bike):
        def submit(entry: FuelEntry):
            self.services.fuel_logs.create(bike.id, entry)
            self._refresh_bike()

        RefuelPopup(FuelEntry.for_bike(bike), on_submit=submit).open()

    def _edit_fuel(self, log: FuelLog):
        def submit(entry: FuelEntry):
            self.services.fuel_logs.update(log.id, entry)
            self._refresh_bike()

        RefuelPopup(FuelEntry.from_log(log), on_submit=submit, editing=True).open()

    def _delete_fuel(self, log: FuelLog):
        def delete():
            try:
                self.services.fuel_logs.delete(log.id)
            except Exception as e:  # noqa: BLE001
                logger.error(f"Failed to delete fuel log: {e}")
                return
            self._refresh_bike()

        confirm("Delete Fuel Log", "Delete this fuel log?", delete)

    def _refresh_bike(self):
        """Reload bikes so the spinner carries the recomputed mileage."""
        selected = self.bike.id if self.bike else None
        self.bike_spinner.set_bikes(self.services.bikes.list(), selected)
        self.refresh_list()

    # General service log

    def _show_logs(self, bike: Bike):
        logs = self.services.maintenance_logs.list(bike.id)
        if not logs:
            self.list_layout.add_widget(empty_message("No service log entries."))
            return
        for log in logs:
            self.list_layout.add_widget(self._log_row(log))

    def _log_row(self, log: MaintenanceLog) -> BoxLayout:
        details = f"{format_short_date(log.date_performed)} | {log.odo_at_service:,} km"
        if log.notes:
            details += f" | {log.notes}"
        return _row(log.service_type, details, [("Delete", lambda: self._delete_log(log))])

    def _add_log(self, bike: Bike):
        def submit(values: dict):
            self.services.maintenance_logs.create(
                bike.id,
                values["service_type"],
                values["odo_at_service"],
                date_performed=values["date_performed"] or None,
                notes=values["notes"] or None,
                receipt_url=values["receipt_url"] or None,
            )
            self.refresh_list()

        FormPopup(
            "Add Service Log",
            [
                ("service_type", "Service type", None, ""),
                ("odo_at_service", "Odometer (km)", "int", str(bike.current_odo)),
                ("date_performed", "Date (YYYY-MM-DD)", None, ""),
                ("notes", "Notes (optional)", None, ""),
                ("receipt_url", "Receipt URL (optional)", None, ""),
            ],
            submit,
        ).open()

    def _delete_log(self, log: MaintenanceLog):
        def delete():
            try:
                self.services.maintenance_logs.delete(log.id)
            except Exception as e:  # noqa: BLE001
                logger.error(f"Failed to delete maintenance log: {e}")
                return
            self.refresh_list()

        confirm("Delete Log", f"Delete '{log.service_type}'?", delete)

    def _on_add(self, instance):
        bike = self.bike
        if bike is None:
            return
        if self.tab == "Fuel":
            self._add_fuel(bike)
        elif self.tab == "Logs":
            self._add_log(bike)
        else:
            self._add_schedule(bike)

    def _add_schedule(self, bike: Bike):
        def submit(values: dict):
            self.services.schedules.create(
                bike.id,
                values["part_name"],
                interval_km=int(values["interval_km"] or 0),
                interval_months=int(values["interval_months"] or 0),
                last_service_odo=bike.current_odo,
            )
            self.refresh_list()

        FormPopup(
            "Add Maintenance Schedule",
            [
                ("part_name", "Part", None, ""),
                ("interval_km", "Interval (km)", "int", ""),
                ("interval_months", "Interval (months)", "int", ""),
            ],
            submit,
        ).open()
