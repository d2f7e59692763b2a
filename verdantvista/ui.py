# -*- coding: utf-8 -*-
"""Textual UI for Verdant Vista.

This file contains ONLY the UI: screens, modals, and the App wrapper. It
talks to the backend through ``verdantvista.logic`` and the ``Vault`` held by
the App. Errors from the storage layer are shown with ``notify`` at the
button handler that triggered them.

Theme switching:
    We use a single theme.css with 3 variants (vt220/amber/neon) implemented
    as CSS class scopes: `.theme-vt220`, `.theme-amber`, `.theme-neon`.
    The app toggles one of these classes at runtime based on the saved config.
"""
from __future__ import annotations

from datetime import datetime, time, timezone
from pathlib import Path
from typing import Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen, Screen
from textual.widgets import (
    Button,
    Footer,
    Header,
    Input,
    Label,
    ListItem,
    ListView,
    Static,
    TabPane,
    TabbedContent,
    TextArea,
)

from verdantvista.collaborators import (
    EventRecognizer,
    MoodRetriever,
    RecognizedEvent,
    event_from_recognition,
)
from verdantvista.errors import VaultError
from verdantvista.logic import (
    add_entry,
    add_event,
    default_backup_path,
    delete_entry,
    display_date,
    export_backup_file,
    get_entry,
    import_backup_file,
    init_db,
    load_config,
    recognize_event_for_entry,
    retrieve_entries_by_mood,
    save_config,
    search_entries,
    sorted_entries,
    upcoming_events,
    update_entry,
)
from verdantvista.models import Dataset, DiaryEntry
from verdantvista.vault import Vault

THEME_CSS_PATH = str(Path(__file__).with_name("theme.css"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_app_theme(app: App, theme_key: str) -> None:
    """Apply one of ('vt220_green', 'as400_amber', 'vector_neon') to the App."""
    valid = {
        "vt220_green": "theme-vt220",
        "as400_amber": "theme-amber",
        "vector_neon": "theme-neon",
    }
    target = valid.get(theme_key, "theme-vt220")
    for cls in ("theme-vt220", "theme-amber", "theme-neon"):
        app.set_class(False, cls)
    app.set_class(True, target)


def _entry_label(entry: DiaryEntry) -> str:
    first_line = entry.content.strip().splitlines()[0] if entry.content.strip() else ""
    return f"{display_date(entry.date)} — {first_line[:60]}"


def _parse_date_input(value: str) -> Optional[str]:
    """'' -> None (now); 'YYYY-MM-DD' or full ISO -> ISO string."""
    value = value.strip()
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt.astimezone(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Modals
# ---------------------------------------------------------------------------

class SettingsModal(ModalScreen[None]):
    """Settings: theme choice and backup folder. Persisted to config."""

    def compose(self) -> ComposeResult:
        cfg = load_config()
        active = str(cfg.get("active_theme", "vt220_green"))
        yield Container(
            Static("SETTINGS", classes="title"),
            Horizontal(
                Button("VT220 GREEN", id="t_green", classes="-primary" if active == "vt220_green" else ""),
                Button("AS/400 AMBER", id="t_amber", classes="-primary" if active == "as400_amber" else ""),
                Button("VECTOR NEON", id="t_neon", classes="-primary" if active == "vector_neon" else ""),
                id="theme-row",
            ),
            Static("Backup folder", classes="hint"),
            Input(value=str(cfg.get("backup_dir", "")), id="backup_dir"),
            Horizontal(Button("Save", id="save", classes="-primary"), Button("Close", id="close")),
            id="modal-card",
            classes="layer-ui",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        cfg = load_config()
        themes = {"t_green": "vt220_green", "t_amber": "as400_amber", "t_neon": "vector_neon"}
        bid = event.button.id or ""
        if bid in themes:
            cfg["active_theme"] = themes[bid]
            save_config(cfg)
            _apply_app_theme(self.app, themes[bid])
            self.app.pop_screen()
            self.app.push_screen(SettingsModal())
        elif bid == "save":
            cfg["backup_dir"] = self.query_one("#backup_dir", Input).value.strip()
            save_config(cfg)
            self.app.notify("Settings saved.")
            self.app.pop_screen()
        elif bid == "close":
            self.app.pop_screen()


class BackupModal(ModalScreen[None]):
    """Export the stored ciphertext, or replace it from a backup file."""

    def __init__(self, mode: str) -> None:
        super().__init__()
        self.mode = mode

    def compose(self) -> ComposeResult:
        importing = self.mode == "import"
        yield Container(
            Static("IMPORT BACKUP" if importing else "EXPORT BACKUP", classes="title"),
            Static(
                "Importing REPLACES your current journal. This cannot be undone."
                if importing
                else "The backup stays encrypted with your current password.",
                classes="hint",
            ),
            Input(
                value="" if importing else str(default_backup_path()),
                placeholder="backup file path",
                id="path",
            ),
            Horizontal(
                Button("Replace Journal" if importing else "Export", id="go", classes="-primary"),
                Button("Close", id="close"),
            ),
            id="modal-card",
            classes="layer-ui",
        )

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        if bid == "close":
            self.app.pop_screen()
            return
        path = self.query_one("#path", Input).value.strip()
        if not path:
            self.app.notify("Backup path required")
            return
        try:
            if self.mode == "export":
                target = await export_backup_file(path)
                self.app.notify(f"Backup saved to {target}")
                self.app.pop_screen()
                return
            was_unlocked = self.app.vault.is_unlocked
            await import_backup_file(path, self.app.vault)
        except (VaultError, OSError) as exc:
            self.app.notify(str(exc))
            return
        self.app.dataset = None
        self.app.notify("Backup imported. Unlock with the backup's password.")
        self.app.pop_screen()
        if was_unlocked:
            self.app.pop_screen()


class EditEntryModal(ModalScreen[None]):
    """Edit the date/content of an entry."""
    AUTO_DISMISS = False

    def __init__(self, entry_id: str) -> None:
        super().__init__()
        self.entry_id = entry_id

    def on_mount(self) -> None:
        entry = get_entry(self.app.dataset, self.entry_id)
        self.query_one("#edate", Input).value = entry.date
        self.query_one("#econtent", TextArea).text = entry.content

    def compose(self) -> ComposeResult:
        yield Container(
            Static("EDIT ENTRY", classes="title"),
            Input(placeholder="date (YYYY-MM-DD)", id="edate"),
            TextArea(id="econtent"),
            Horizontal(
                Button("Save", id="save", classes="-primary"),
                Button("Cancel", id="cancel"),
            ),
            id="modal-card", classes="layer-ui",
        )

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        if bid == "save":
            content = self.query_one("#econtent", TextArea).text
            try:
                date = _parse_date_input(self.query_one("#edate", Input).value)
                self.app.dataset = await update_entry(
                    self.app.vault, self.app.dataset, self.entry_id, content=content, date=date
                )
            except (VaultError, ValueError) as exc:
                self.app.notify(str(exc))
                return
            self.app.notify("Entry updated")
            self.app.pop_screen()
            await self.app.pop_screen()
            await self.app.push_screen(ViewEntryScreen(self.entry_id))
        elif bid == "cancel":
            self.app.pop_screen()


class ConfirmDeleteModal(ModalScreen[None]):
    """Confirm deleting an entry."""
    AUTO_DISMISS = False

    def __init__(self, entry_id: str) -> None:
        super().__init__()
        self.entry_id = entry_id

    def compose(self) -> ComposeResult:
        yield Container(
            Static("DELETE ENTRY?", classes="title"),
            Static("This cannot be undone."),
            Horizontal(
                Button("Delete", id="yes", classes="-primary"),
                Button("Cancel", id="no"),
            ),
            id="modal-card", classes="layer-ui",
        )

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if (event.button.id or "") != "yes":
            self.app.pop_screen()
            return
        try:
            self.app.dataset = await delete_entry(self.app.vault, self.app.dataset, self.entry_id)
        except VaultError as exc:
            self.app.notify(str(exc))
            return
        self.app.notify("Entry deleted")
        self.app.pop_screen()        # close confirm
        await self.app.pop_screen()  # close view screen; home refreshes on resume


class EventSuggestionModal(ModalScreen[None]):
    """Offer to add an event recognized in an entry."""

    def __init__(self, event: RecognizedEvent) -> None:
        super().__init__()
        self.event = event

    def compose(self) -> ComposeResult:
        widgets = [
            Static("EVENT DETECTED", classes="title"),
            Static(f"{self.event.title}\n{self.event.date}"),
        ]
        if self.event.needs_explicit_time:
            widgets.append(Static("No time was recognized. Enter one (HH:MM).", classes="hint"))
            widgets.append(Input(placeholder="HH:MM", id="etime"))
        widgets.append(
            Horizontal(Button("Add Event", id="add", classes="-primary"), Button("Dismiss", id="close"))
        )
        yield Container(*widgets, id="modal-card", classes="layer-ui")

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if (event.button.id or "") != "add":
            self.app.pop_screen()
            return
        try:
            explicit: Optional[time] = None
            if self.event.needs_explicit_time:
                explicit = time.fromisoformat(self.query_one("#etime", Input).value.strip())
            app_event = event_from_recognition(self.event, explicit)
            self.app.dataset = await add_event(self.app.vault, self.app.dataset, app_event)
        except (VaultError, ValueError) as exc:
            self.app.notify(str(exc))
            return
        self.app.notify("Event added")
        self.app.pop_screen()


class MoodRetrievalModal(ModalScreen[None]):
    """Find entries relevant to how the user feels right now."""

    def compose(self) -> ComposeResult:
        self.results = ListView()
        yield Container(
            Static("MOOD RETRIEVAL", classes="title"),
            Input(placeholder="how are you feeling?", id="mood"),
            Horizontal(Button("Find Entries", id="find", classes="-primary"), Button("Close", id="close")),
            self.results,
            id="modal-card",
            classes="layer-ui",
        )

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        if bid == "close":
            self.app.pop_screen()
            return
        mood = self.query_one("#mood", Input).value
        try:
            found = await retrieve_entries_by_mood(self.app.mood_retriever, mood, self.app.dataset)
        except Exception as exc:
            # collaborator failures are shown, never retried
            self.app.notify(str(exc))
            return
        self.results.clear()
        if not found:
            self.results.append(ListItem(Label("No relevant entries.")))
        for entry in found:
            self.results.append(ListItem(Label(_entry_label(entry))))


# ---------------------------------------------------------------------------
# Screens
# ---------------------------------------------------------------------------

class UnlockScreen(Screen):
    """Password prompt. ESC from here quits the app."""

    BINDINGS = [Binding("escape", "app.quit", "Quit")]
    LAYERS = ("bg", "ui")

    def compose(self) -> ComposeResult:
        yield Header(classes="layer-ui")
        yield Container(
            Static("UNLOCK YOUR JOURNAL", classes="title", id="unlock_title"),
            Static("Enter your password to access your entries.", classes="hint", id="unlock_hint"),
            Input(placeholder="password", password=True, id="password"),
            Horizontal(Button("Unlock", id="do_unlock", classes="-primary"), Button("Exit", id="exit")),
            Horizontal(Button("Settings", id="open_settings"), Button("Import Backup", id="open_import")),
            Static(
                "All data is encrypted and stored only on this device. "
                "There is no way to recover it without the password.",
                classes="hint",
            ),
            id="modal-card",
            classes="layer-ui",
        )
        yield Footer(classes="layer-ui")

    async def on_screen_resume(self) -> None:
        await self.refresh_wording()

    async def on_mount(self) -> None:
        await self.refresh_wording()

    async def refresh_wording(self) -> None:
        if await self.app.vault.has_data():
            title, hint = "UNLOCK YOUR JOURNAL", "Enter your password to access your entries."
        else:
            title, hint = "CREATE A PASSWORD", "This password will encrypt your journal. Please remember it."
        self.query_one("#unlock_title", Static).update(title)
        self.query_one("#unlock_hint", Static).update(hint)

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        if bid == "do_unlock":
            field = self.query_one("#password", Input)
            if not field.value:
                self.app.notify("Password required")
                return
            try:
                self.app.dataset = await self.app.vault.unlock(field.value)
            except VaultError as exc:
                self.app.notify(str(exc))
                return
            finally:
                field.value = ""
            await self.app.push_screen(JournalHomeScreen())
        elif bid == "exit":
            self.app.exit()
        elif bid == "open_settings":
            await self.app.push_screen(SettingsModal())
        elif bid == "open_import":
            await self.app.push_screen(BackupModal("import"))


class JournalHomeScreen(Screen):
    """Unlocked home: Browse / New Entry / Search / Events / Account tabs."""

    BINDINGS = [Binding("escape", "lock", "Lock")]
    LAYERS = ("bg", "ui")

    def compose(self) -> ComposeResult:
        yield Header(classes="layer-ui")

        with Container(id="modal-card", classes="layer-ui"):
            with TabbedContent():
                with TabPane("Browse"):
                    self.list_view = ListView(id="browse")
                    yield self.list_view
                with TabPane("New Entry"):
                    self.date_in = Input(placeholder="date (YYYY-MM-DD, blank = now)")
                    self.content_in = TextArea(id="new_content")
                    yield self.date_in
                    yield self.content_in
                    yield Button("Save Entry", id="save_entry", classes="-primary")
                with TabPane("Search"):
                    self.query_in = Input(placeholder="search entries")
                    yield self.query_in
                    yield Button("Search", id="do_search")
                    self.search_results = ListView(id="search_results")
                    yield self.search_results
                with TabPane("Events"):
                    self.events_view = ListView(id="events")
                    yield self.events_view
                with TabPane("Account"):
                    buttons = [
                        Button("Settings", id="open_settings"),
                        Button("Export Backup", id="open_export"),
                        Button("Import Backup", id="open_import"),
                    ]
                    if self.app.mood_retriever is not None:
                        buttons.append(Button("Mood Retrieval", id="open_mood"))
                    buttons.append(Button("Lock", id="lock"))
                    yield Horizontal(*buttons)

        yield Footer(classes="layer-ui")

    def on_mount(self) -> None:
        self.refresh_lists()

    def on_screen_resume(self) -> None:
        if self.app.dataset is not None:
            self.refresh_lists()

    def refresh_lists(self) -> None:
        self.list_view.clear()
        for entry in sorted_entries(self.app.dataset):
            item = ListItem(Label(_entry_label(entry)))
            item.data = entry.id
            self.list_view.append(item)
        self.events_view.clear()
        for ev in upcoming_events(self.app.dataset):
            self.events_view.append(ListItem(Label(f"{display_date(ev.date, with_time=True)} — {ev.title}")))

    async def on_list_view_selected(self, message: ListView.Selected) -> None:
        entry_id = getattr(message.item, "data", None)
        if entry_id:
            await self.app.push_screen(ViewEntryScreen(entry_id=entry_id))

    def action_lock(self) -> None:
        self.app.vault.lock()
        self.app.dataset = None
        self.app.pop_screen()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        if bid == "save_entry":
            content = self.content_in.text
            try:
                date = _parse_date_input(self.date_in.value)
                self.app.dataset, entry = await add_entry(
                    self.app.vault, self.app.dataset, content, date
                )
            except (VaultError, ValueError) as exc:
                self.app.notify(str(exc))
                return
            self.date_in.value = ""
            self.content_in.text = ""
            self.refresh_lists()
            self.app.notify("Entry saved")
            if self.app.recognizer is not None:
                await self.suggest_event(entry)
        elif bid == "do_search":
            self.search_results.clear()
            found = search_entries(self.app.dataset, self.query_in.value)
            if not found:
                self.search_results.append(ListItem(Label("No results.")))
                return
            for entry in found:
                li = ListItem(Label(_entry_label(entry)))
                li.data = entry.id
                self.search_results.append(li)
        elif bid == "open_settings":
            self.app.push_screen(SettingsModal())
        elif bid == "open_export":
            self.app.push_screen(BackupModal("export"))
        elif bid == "open_import":
            self.app.push_screen(BackupModal("import"))
        elif bid == "open_mood":
            self.app.push_screen(MoodRetrievalModal())
        elif bid == "lock":
            self.action_lock()

    async def suggest_event(self, entry: DiaryEntry) -> None:
        try:
            result = await recognize_event_for_entry(self.app.recognizer, entry)
        except Exception as exc:
            # collaborator failures are shown, never retried
            self.app.notify(f"Event recognition failed: {exc}")
            return
        if result.event is not None:
            await self.app.push_screen(EventSuggestionModal(result.event))


class ViewEntryScreen(Screen):
    """View a single journal entry."""

    BINDINGS = [Binding("escape", "app.pop_screen", "Back")]
    LAYERS = ("bg", "ui")

    def __init__(self, entry_id: str) -> None:
        super().__init__()
        self.entry_id = entry_id

    def compose(self) -> ComposeResult:
        yield Header(classes="layer-ui")
        with Container(id="modal-card", classes="layer-ui"):
            self.meta_label = Static("", classes="title")
            yield self.meta_label
            self.body_area = TextArea(id="entry-text", read_only=True)
            yield self.body_area
            with Horizontal(id="actions"):
                yield Button("Edit", id="edit", classes="-primary")
                yield Button("Delete", id="delete")
                if self.app.recognizer is not None:
                    yield Button("Detect Event", id="detect")
                yield Button("Back", id="back")
        yield Footer(classes="layer-ui")

    def on_mount(self) -> None:
        entry = get_entry(self.app.dataset, self.entry_id)
        self.meta_label.update(display_date(entry.date, with_time=True))
        self.body_area.text = entry.content
        self.set_focus(self.body_area)

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        if bid == "back":
            self.app.pop_screen()
        elif bid == "edit":
            await self.app.push_screen(EditEntryModal(self.entry_id))
        elif bid == "delete":
            await self.app.push_screen(ConfirmDeleteModal(self.entry_id))
        elif bid == "detect":
            entry = get_entry(self.app.dataset, self.entry_id)
            try:
                result = await recognize_event_for_entry(self.app.recognizer, entry)
            except Exception as exc:
                self.app.notify(f"Event recognition failed: {exc}")
                return
            if result.event is None:
                self.app.notify("No upcoming event found.")
                return
            await self.app.push_screen(EventSuggestionModal(result.event))


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

class VerdantVistaApp(App):
    """Textual App wrapper. Loads CSS, DB, and initial screen; applies theme.

    The analysis collaborators are optional; their controls only appear when
    they are supplied.
    """

    TITLE = "VERDANT//VISTA"
    CSS_PATH = THEME_CSS_PATH

    def __init__(
        self,
        recognizer: Optional[EventRecognizer] = None,
        mood_retriever: Optional[MoodRetriever] = None,
    ) -> None:
        super().__init__()
        self.vault = Vault()
        self.dataset: Optional[Dataset] = None
        self.recognizer = recognizer
        self.mood_retriever = mood_retriever

    async def on_mount(self) -> None:
        await init_db()
        cfg = load_config()
        _apply_app_theme(self, str(cfg.get("active_theme", "vt220_green")))
        await self.push_screen(UnlockScreen())

    def on_unmount(self) -> None:
        self.vault.lock()
        self.dataset = None
