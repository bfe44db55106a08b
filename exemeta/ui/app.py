"""Interface Tkinter principale."""

from __future__ import annotations

import logging
import threading
import tkinter as tk
from tkinter import filedialog, messagebox, ttk

import sv_ttk

from exemeta.dispatch import UiDispatcher
from exemeta.services import (
    AuthSessionManager,
    BatchLockedError,
    BatchUploader,
    LoginOutcome,
    LoginResult,
    MetadataError,
    UploadErrorKind,
    UploadResult,
)
from exemeta.services.metadata import build_custom_data, describe, extract_metadata
from exemeta.state import AppState, AuthSession, PendingItem

logger = logging.getLogger(__name__)

ACCENT_COLOR = "#3B82F6"
BACKGROUND_COLOR = "#121212"
CARD_COLOR = "#181818"
STATUS_NEUTRAL_COLOR = "#B3B3B3"
STATUS_SUCCESS_COLOR = "#4ADE80"
LISTBOX_SELECTION_FG = "#000000"
DISPATCH_INTERVAL_MS = 50
PLACEHOLDER_METADATA_TEXT = "Les informations du fichier apparaîtront ici."

FILE_TYPES = (
    ("Exécutables", "*.exe"),
    ("Tous les fichiers", "*.*"),
)


class MainWindow:
    """Fenêtre principale de l'application."""

    def __init__(
        self,
        auth: AuthSessionManager,
        uploader: BatchUploader,
        dispatcher: UiDispatcher,
        state: AppState,
    ) -> None:
        self._auth = auth
        self._uploader = uploader
        self._dispatcher = dispatcher
        self._state = state

        self.root = tk.Tk()
        self.root.title("ExeMeta – Envoi de métadonnées")
        self.root.geometry("720x820")
        self.root.minsize(560, 640)

        sv_ttk.set_theme("dark")
        self.root.configure(bg=BACKGROUND_COLOR)
        self._configure_styles()

        self._send_hint_var = tk.StringVar()

        self.root.columnconfigure(0, weight=1)
        self.root.rowconfigure(0, weight=0)
        self.root.rowconfigure(1, weight=1)

        self._build_header()
        self._build_main_area()
        self._update_auth_ui()
        self._refresh_pending_list()

        self.root.protocol("WM_DELETE_WINDOW", self._on_close)
        self.root.after(DISPATCH_INTERVAL_MS, self._pump_dispatcher)

    # --------------------------------------------------------------------- UI -
    def _configure_styles(self) -> None:
        style = ttk.Style()
        style.configure("Main.TFrame", background=BACKGROUND_COLOR)
        style.configure("Header.TFrame", background=BACKGROUND_COLOR)
        style.configure("Card.TFrame", background=CARD_COLOR)
        style.configure(
            "Section.TLabel",
            background=CARD_COLOR,
            foreground="#FFFFFF",
            font=("Helvetica", 12, "bold"),
        )
        style.configure(
            "Status.TLabel",
            background=BACKGROUND_COLOR,
            foreground=STATUS_NEUTRAL_COLOR,
            font=("Helvetica", 11),
        )
        style.configure(
            "Metadata.TLabel",
            background=CARD_COLOR,
            foreground=STATUS_NEUTRAL_COLOR,
            font=("Consolas", 10),
        )
        style.configure("Accent.TButton", font=("Helvetica", 11, "bold"))
        style.configure("TButton", padding=(16, 8))
        style.map("TButton", background=[("disabled", "#2B2B2B")])
        self.root.option_add("*Font", "Helvetica 11")

    def _build_header(self) -> None:
        frame = ttk.Frame(self.root, style="Header.TFrame", padding=(24, 12))
        frame.grid(row=0, column=0, sticky="nwe")
        frame.columnconfigure(0, weight=1)

        self._status_label = ttk.Label(frame, text="Non connecté", style="Status.TLabel")
        self._status_label.grid(row=0, column=0, sticky="w")

        self._auth_button = ttk.Button(
            frame,
            text="Connexion",
            command=self.login,
            style="Accent.TButton",
        )
        self._auth_button.grid(row=0, column=1, sticky="e")

    def _build_main_area(self) -> None:
        main_frame = ttk.Frame(self.root, padding=(24, 8, 24, 16), style="Main.TFrame")
        main_frame.grid(row=1, column=0, sticky="nsew")
        main_frame.columnconfigure(0, weight=1)
        main_frame.rowconfigure(0, weight=1)

        self._build_pending_section(main_frame)
        self._build_metadata_section(main_frame)
        self._build_send_section(main_frame)

    def _build_pending_section(self, parent: tk.Misc) -> None:
        frame = ttk.Frame(parent, style="Card.TFrame", padding=(20, 18))
        frame.grid(row=0, column=0, sticky="nsew")
        frame.columnconfigure(0, weight=1)
        frame.rowconfigure(1, weight=1)

        self._pending_title = ttk.Label(frame, text="Fichiers en attente", style="Section.TLabel")
        self._pending_title.grid(row=0, column=0, sticky="w")

        list_container = ttk.Frame(frame, style="Card.TFrame")
        list_container.grid(row=1, column=0, sticky="nsew", pady=(16, 0))
        list_container.columnconfigure(0, weight=1)
        list_container.rowconfigure(0, weight=1)

        self._pending_listbox = tk.Listbox(
            list_container,
            activestyle=tk.NONE,
            bg=CARD_COLOR,
            fg="#FFFFFF",
            font=("Helvetica", 11),
            highlightthickness=0,
            selectbackground=ACCENT_COLOR,
            selectforeground=LISTBOX_SELECTION_FG,
            selectmode=tk.EXTENDED,
            relief=tk.FLAT,
            borderwidth=0,
        )
        self._pending_listbox.grid(row=0, column=0, sticky="nsew")
        self._pending_listbox.bind("<<ListboxSelect>>", self._on_pending_selected)

        scrollbar = ttk.Scrollbar(
            list_container,
            orient=tk.VERTICAL,
            command=self._pending_listbox.yview,
        )
        scrollbar.grid(row=0, column=1, sticky="ns")
        self._pending_listbox.configure(yscrollcommand=scrollbar.set)

        buttons = ttk.Frame(frame, style="Card.TFrame")
        buttons.grid(row=2, column=0, sticky="ew", pady=(14, 0))

        self._browse_button = ttk.Button(buttons, text="Ajouter…", command=self.browse_files)
        self._browse_button.pack(side=tk.LEFT)
        self._remove_button = ttk.Button(buttons, text="Retirer", command=self.remove_selected)
        self._remove_button.pack(side=tk.LEFT, padx=(8, 0))
        self._clear_button = ttk.Button(buttons, text="Tout effacer", command=self.clear_pending)
        self._clear_button.pack(side=tk.LEFT, padx=(8, 0))

    def _build_metadata_section(self, parent: tk.Misc) -> None:
        frame = ttk.Frame(parent, style="Card.TFrame", padding=(20, 18))
        frame.grid(row=1, column=0, sticky="ew", pady=(20, 0))
        frame.columnconfigure(0, weight=1)

        self._file_name_label = ttk.Label(frame, text="", style="Section.TLabel")
        self._file_name_label.grid(row=0, column=0, sticky="w")

        self._metadata_label = ttk.Label(
            frame,
            text=PLACEHOLDER_METADATA_TEXT,
            style="Metadata.TLabel",
            justify=tk.LEFT,
        )
        self._metadata_label.grid(row=1, column=0, sticky="w", pady=(10, 0))

        ttk.Button(frame, text="Copier", command=self.copy_metadata).grid(
            row=0, column=1, rowspan=2, sticky="ne"
        )

    def _build_send_section(self, parent: tk.Misc) -> None:
        frame = ttk.Frame(parent, style="Main.TFrame")
        frame.grid(row=2, column=0, sticky="ew", pady=(24, 0))

        self._send_button = ttk.Button(
            frame,
            text="Envoyer",
            command=self.send_all,
            style="Accent.TButton",
            state=tk.DISABLED,
        )
        self._send_button.pack(side=tk.RIGHT)

        self._send_hint = ttk.Label(frame, textvariable=self._send_hint_var, style="Status.TLabel")
        self._send_hint.pack(side=tk.RIGHT, padx=(0, 16))

    # ------------------------------------------------------------ Dispatcher -
    def _pump_dispatcher(self) -> None:
        self._dispatcher.drain()
        self.root.after(DISPATCH_INTERVAL_MS, self._pump_dispatcher)

    def _run_in_background(self, target, name: str) -> None:
        threading.Thread(target=target, name=name, daemon=True).start()

    # --------------------------------------------------------------- Session -
    def on_session_changed(self, session: AuthSession) -> None:
        """Appelé sur le thread UI à chaque modification de la session."""
        self._update_auth_ui()

    def show_login_url(self, url: str) -> None:
        """Le navigateur n'a pas pu être ouvert : l'URL est copiée pour l'utilisateur."""
        self.root.clipboard_clear()
        self.root.clipboard_append(url)
        messagebox.showinfo(
            "Connexion",
            "Impossible d'ouvrir le navigateur.\n"
            "L'adresse de connexion a été copiée dans le presse-papiers :\n\n" + url,
        )

    def restore_session(self) -> None:
        self._run_in_background(self._auth.restore_session, "restore-session")

    def login(self) -> None:
        self._auth_button.configure(state=tk.DISABLED)
        self._auth.login_in_background(on_done=self._on_login_done)

    def _on_login_done(self, result: LoginResult) -> None:
        if result.outcome is LoginOutcome.SUCCESS:
            self.root.deiconify()
            self.root.lift()
            self.root.focus_force()
        elif result.outcome is LoginOutcome.NO_TOKEN:
            messagebox.showwarning("Connexion", "Échec de la connexion : aucun jeton reçu.")
        elif result.outcome is LoginOutcome.TOKEN_REJECTED:
            messagebox.showerror("Connexion", "Échec de la connexion : jeton refusé par le service.")
        elif result.outcome is LoginOutcome.ERROR:
            messagebox.showerror("Connexion", f"Échec de la connexion : {result.message}")
        self._update_auth_ui()

    def logout(self) -> None:
        """Déconnecte l'utilisateur."""
        if not self._state.is_authenticated:
            return
        self._auth.logout()
        self._update_auth_ui()

    def _update_auth_ui(self) -> None:
        """Met à jour l'interface en fonction de l'état d'authentification."""
        session = self._state.session

        if session.is_authenticated:
            self._status_label.configure(
                text=f"Connecté en tant que : {session.display_name}",
                foreground=STATUS_SUCCESS_COLOR,
            )
            self._auth_button.configure(text="Déconnexion", command=self.logout, state=tk.NORMAL)
        elif session.logging_in:
            self._status_label.configure(
                text="Connexion en cours dans le navigateur…",
                foreground=STATUS_NEUTRAL_COLOR,
            )
            self._auth_button.configure(text="Connexion", command=self.login, state=tk.DISABLED)
        else:
            self._status_label.configure(text="Non connecté", foreground=STATUS_NEUTRAL_COLOR)
            self._auth_button.configure(text="Connexion", command=self.login, state=tk.NORMAL)
        self._update_send_button_state()

    def _update_send_button_state(self) -> None:
        authenticated = self._state.is_authenticated
        has_files = bool(self._state.batch)
        uploading = self._state.upload.in_flight

        # La connexion est proposée au moment de l'envoi si besoin.
        enabled = has_files and not uploading
        self._send_button.configure(state=tk.NORMAL if enabled else tk.DISABLED)

        if uploading:
            self._send_hint_var.set("Envoi en cours…")
        elif not authenticated and not has_files:
            self._send_hint_var.set("Connectez-vous et sélectionnez un fichier")
        elif not has_files:
            self._send_hint_var.set("Sélectionnez un fichier")
        elif not authenticated:
            self._send_hint_var.set("Connexion requise à l'envoi")
        else:
            self._send_hint_var.set("")

        editable = tk.DISABLED if uploading else tk.NORMAL
        for button in (self._browse_button, self._remove_button, self._clear_button):
            button.configure(state=editable)

    # ----------------------------------------------------------------- Files -
    def browse_files(self) -> None:
        paths = filedialog.askopenfilenames(
            parent=self.root,
            title="Sélectionner des exécutables",
            filetypes=FILE_TYPES,
        )
        for path in paths:
            self.add_file(path)

    def add_file(self, file_path: str) -> None:
        lowered = file_path.lower()
        if lowered.endswith(".url"):
            messagebox.showwarning("Fichier refusé", "Les fichiers .url ne peuvent pas être traités.")
            return
        if lowered.endswith(".lnk"):
            messagebox.showwarning(
                "Fichier refusé",
                "Les raccourcis ne sont pas pris en charge : sélectionnez l'exécutable cible.",
            )
            return
        if not lowered.endswith(".exe"):
            messagebox.showwarning("Fichier refusé", "Le fichier n'est pas un exécutable (.exe).")
            return

        try:
            metadata = extract_metadata(file_path)
        except MetadataError as exc:
            logger.warning("Métadonnées illisibles pour %s : %s", file_path, exc)
            messagebox.showerror("Lecture impossible", f"Lecture des métadonnées impossible : {exc}")
            return

        custom_data = build_custom_data(file_path, metadata)
        if custom_data["IsInstaller"]:
            messagebox.showinfo(
                "Installeur détecté",
                "Ce fichier semble être un programme d'installation : ses métadonnées "
                "risquent d'être refusées.",
            )

        try:
            self._state.batch.add(PendingItem(file_path, metadata, custom_data))
        except BatchLockedError as exc:
            messagebox.showwarning("Envoi en cours", str(exc))
            return
        self._refresh_pending_list()

    def remove_selected(self) -> None:
        selection = self._pending_listbox.curselection()
        if not selection:
            messagebox.showwarning("Aucune sélection", "Choisissez un fichier dans la liste.")
            return

        items = self._state.batch.snapshot()
        try:
            for index in selection:
                self._state.batch.remove(items[index].file_path)
        except BatchLockedError as exc:
            messagebox.showwarning("Envoi en cours", str(exc))
        self._refresh_pending_list()

    def clear_pending(self) -> None:
        try:
            self._state.batch.clear()
        except BatchLockedError as exc:
            messagebox.showwarning("Envoi en cours", str(exc))
        self._refresh_pending_list()

    def _refresh_pending_list(self) -> None:
        self._pending_listbox.delete(0, tk.END)
        for item in self._state.batch:
            self._pending_listbox.insert(tk.END, item.file_name)

        count = self._state.batch.count()
        self._pending_title.configure(text=f"Fichiers en attente ({count})")
        self._show_item(self._state.batch.first())
        self._update_send_button_state()

    def _on_pending_selected(self, _event: tk.Event) -> None:
        selection = self._pending_listbox.curselection()
        if selection:
            self._show_item(self._state.batch.snapshot()[selection[0]])

    def _show_item(self, item: PendingItem | None) -> None:
        if item is None:
            self._file_name_label.configure(text="")
            self._metadata_label.configure(text=PLACEHOLDER_METADATA_TEXT)
            return
        self._file_name_label.configure(text=item.file_name)
        self._metadata_label.configure(text=f"{item.file_path}\n\n{describe(item.metadata)}")

    def copy_metadata(self) -> None:
        combined = "\n\n".join(
            text
            for text in (
                self._file_name_label.cget("text").strip(),
                self._metadata_label.cget("text").strip(),
            )
            if text and text != PLACEHOLDER_METADATA_TEXT
        )
        self.root.clipboard_clear()
        self.root.clipboard_append(combined or "Aucune métadonnée.")
        messagebox.showinfo("Copié", "Métadonnées copiées dans le presse-papiers.")

    # ------------------------------------------------------------------ Send -
    def send_all(self) -> None:
        if not self._state.is_authenticated and not self._state.upload.in_flight and self._state.batch:
            messagebox.showinfo(
                "Connexion requise",
                "Vous devez vous connecter avant l'envoi. Ouverture de la page de connexion…",
            )
        started = self._uploader.start_send(self._on_send_done)
        if started:
            self._send_hint_var.set("Envoi en cours…")
            self._send_button.configure(state=tk.DISABLED)

    def _on_send_done(self, result: UploadResult) -> None:
        if result.ok:
            messagebox.showinfo(
                "Envoi réussi",
                f"{result.uploaded} fichier(s) envoyé(s) ; ils ont été ajoutés à vos brouillons.",
            )
        elif result.error.kind is not UploadErrorKind.ALREADY_IN_FLIGHT:
            messagebox.showerror("Échec de l'envoi", result.error.describe())
        self._refresh_pending_list()
        self._update_auth_ui()

    # ---------------------------------------------------------------- Public -
    def _on_close(self) -> None:
        self._auth.shutdown()
        self.root.destroy()

    def run(self) -> None:
        self.restore_session()
        self.root.mainloop()
