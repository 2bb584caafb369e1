"""Popup announcing a newer app release."""

from typing import Callable

from kivy.uix.boxlayout import BoxLayout
from kivy.uix.button import Button
from kivy.uix.label import Label
from kivy.uix.popup import Popup
from kivy.uix.scrollview import ScrollView

from ...services.updates import UpdateInfo


class UpdatePopup(Popup):
    """
    Release notes with Download and Later buttons.

    ``on_download`` receives the asset (or release page) URL; ``on_later``
    is called when the rider dismisses the release.
    """

    def __init__(
        self,
        info: UpdateInfo,
        on_download: Callable[[str], None],
        on_later: Callable[[UpdateInfo], None] | None = None,
        **kwargs,
    ):
        kwargs.setdefault("title", f"Update available: v{info.latest_version}")
        kwargs.setdefault("size_hint", (0.9, 0.7))
        kwargs.setdefault("auto_dismiss", False)
        super().__init__(**kwargs)
        self.info = info

        content = BoxLayout(orientation="vertical", padding=[12, 8, 12, 8], spacing=8)
        content.add_widget(
            Label(
                text=f"You have v{info.current_version}.",
                font_size="13sp",
                color=(0.7, 0.7, 0.7, 1),
                size_hint_y=None,
                height=28,
            )
        )

        scroll = ScrollView()
        notes = Label(text=info.release_notes, font_size="13sp", halign="left", valign="top", size_hint_y=None)
        notes.bind(width=lambda label, width: setattr(label, "text_size", (width, None)))
        notes.bind(texture_size=lambda label, size: setattr(label, "height", size[1]))
        scroll.add_widget(notes)
        content.add_widget(scroll)

        buttons = BoxLayout(orientation="horizontal", size_hint_y=None, height=50, spacing=10)
        later_btn = Button(text="Later")
        later_btn.bind(on_press=lambda x: self._later(on_later))
        download_btn = Button(text="Download", background_color=(0.0, 0.8, 0.2, 1))
        download_btn.bind(on_press=lambda x: self._download(on_download))
        buttons.add_widget(later_btn)
        buttons.add_widget(download_btn)
        content.add_widget(buttons)
        self.content = content

    def _later(self, on_later):
        self.dismiss()
        if on_later:
            on_later(self.info)

    def _download(self, on_download):
        self.dismiss()
        on_download(self.info.download_url or self.info.release_url)
