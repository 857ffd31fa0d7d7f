import os
import threading
import configparser
import time
from datetime import datetime
import customtkinter as ctk

# Import the report logic
from main import log_tag, parse_course_ids, run_report
from api.services import TABS, TAB_TITLES

# --- Colors ---
HEADER_NAVY       = "#003087"
ACCENT_ORANGE     = "#F68629"
ACCENT_BLUE       = "#1859A9"
WHITE             = "#FFFFFF"
BG_COLOR          = "#F8F9FA"

LOG_OK            = "#059669"
LOG_ERROR         = "#DC2626"
LOG_WARN          = "#D97706"
LOG_INFO          = "#1859A9"
LOG_TIMESTAMP     = "#9CA3AF"

ALL_TABS = "All tabs"

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
CONFIG_PATH = os.path.join(BASE_DIR, 'config.ini')

class ReportApp(ctk.CTk):
    def __init__(self):
        super().__init__()
        ctk.set_appearance_mode("light")

        # --- Window Setup ---
        self.title("Course learners behaviour report")
        w, h = 900, 700
        ws = self.winfo_screenwidth()
        hs = self.winfo_screenheight()
        x = int((ws/2) - (w/2))
        y = int((hs/2) - (h/2))
        self.geometry(f"{w}x{h}+{x}+{y}")
        self.configure(fg_color=BG_COLOR)

        # --- State Control ---
        self.stop_event = threading.Event()
        self.start_time = 0
        self.protocol("WM_DELETE_WINDOW", self.on_closing)

        # Last used course ids are remembered in config.ini
        self.app_config = configparser.ConfigParser()
        self.app_config.read(CONFIG_PATH)
        self.last_courses = self.app_config.get('REPORT', 'last_courses', fallback='')

        # --- Build UI ---
        self._build_header()
        self._build_inputs_area()
        self._build_progress_area()
        self._build_console_area()

    def _build_header(self):
        header = ctk.CTkFrame(self, fg_color=HEADER_NAVY, corner_radius=0, height=80)
        header.pack(fill="x")
        header.pack_propagate(False)
        ctk.CTkLabel(header, text="Course learners behaviour report",
                     font=ctk.CTkFont(size=22, weight="bold"), text_color=WHITE).pack(pady=25)

    def _build_inputs_area(self):
        grid = ctk.CTkFrame(self, fg_color="transparent")
        grid.pack(fill="x", padx=50, pady=(30, 10))

        instr = ctk.CTkLabel(grid, text="Course ids (comma separated) and report tab",
                             font=ctk.CTkFont(size=14, weight="bold"), text_color="#333")
        instr.grid(row=0, column=0, columnspan=3, sticky="w", pady=(0, 15))

        # --- Course ids ---
        ctk.CTkLabel(grid, text="Courses:", text_color="#555").grid(row=1, column=0, sticky="w")
        self.entry_courses = ctk.CTkEntry(grid, width=220, height=35, fg_color="white",
                                          border_color="#D1D5DB", placeholder_text="e.g. 12, 31")
        self.entry_courses.insert(0, self.last_courses)
        self.entry_courses.grid(row=2, column=0, sticky="w", padx=(0, 30))
        self.entry_courses.bind("<KeyRelease>", lambda e: self._validate_courses_entry())

        # --- Tab selector ---
        ctk.CTkLabel(grid, text="Tab:", text_color="#555").grid(row=1, column=1, sticky="w")
        self.tab_menu = ctk.CTkOptionMenu(grid, values=[ALL_TABS] + [TAB_TITLES[t] for t in TABS],
                                          fg_color=ACCENT_BLUE, button_color=ACCENT_BLUE, width=220)
        self.tab_menu.set(ALL_TABS)
        self.tab_menu.grid(row=2, column=1, sticky="w")

        # Start Button
        self.btn_run = ctk.CTkButton(
            grid, text="BUILD REPORT",
            fg_color=ACCENT_ORANGE, hover_color="#d97017",
            text_color="white", font=ctk.CTkFont(weight="bold", size=14),
            height=45, width=200, command=self.start_report)
        self.btn_run.grid(row=1, column=2, rowspan=2, sticky="e")

        grid.columnconfigure(2, weight=1)

    def _validate_courses_entry(self):
        """Colors the entry border while typing."""
        if not self.entry_courses.get().strip():
            self.entry_courses.configure(border_color="#D1D5DB")
            return
        try:
            parse_course_ids(self.entry_courses.get())
            self.entry_courses.configure(border_color=ACCENT_BLUE)
        except ValueError:
            self.entry_courses.configure(border_color=LOG_ERROR)

    def _build_progress_area(self):
        prog_frame = ctk.CTkFrame(self, fg_color="transparent")
        prog_frame.pack(fill="x", padx=50, pady=(20, 10))

        status_row = ctk.CTkFrame(prog_frame, fg_color="transparent")
        status_row.pack(fill="x", pady=(0, 5))

        self.status_label = ctk.CTkLabel(status_row, text="Status: Waiting",
                                         text_color=HEADER_NAVY, font=ctk.CTkFont(weight="bold"))
        self.status_label.pack(side="left")

        self.timer_label = ctk.CTkLabel(status_row, text="Time: 00:00", text_color=LOG_TIMESTAMP)
        self.timer_label.pack(side="right")

        self.progressbar = ctk.CTkProgressBar(prog_frame, progress_color=ACCENT_BLUE, height=12)
        self.progressbar.pack(fill="x")
        self.progressbar.set(0)

    def _build_console_area(self):
        ctk.CTkLabel(self, text="Report output", font=ctk.CTkFont(weight="bold", size=13),
                     text_color="#555").pack(anchor="w", padx=55, pady=(10, 5))

        log_frame = ctk.CTkFrame(self, fg_color=WHITE, border_width=1, border_color="#D1D5DB", corner_radius=10)
        log_frame.pack(fill="both", expand=True, padx=50, pady=(0, 30))

        # Fixed-width font keeps the text tables aligned
        self.textbox = ctk.CTkTextbox(log_frame, fg_color="transparent", state="disabled", wrap="none",
                                      font=ctk.CTkFont(family="Consolas", size=11))
        self.textbox.pack(fill="both", expand=True, padx=5, pady=5)

        self.textbox.tag_config("timestamp", foreground=LOG_TIMESTAMP)
        self.textbox.tag_config("ok", foreground=LOG_OK)
        self.textbox.tag_config("error", foreground=LOG_ERROR)
        self.textbox.tag_config("warn", foreground=LOG_WARN)
        self.textbox.tag_config("info", foreground=LOG_INFO)

    def write_log(self, message: str):
        ts = f"[{datetime.now().strftime('%H:%M:%S')}] "
        tag = log_tag(message)

        self.textbox.configure(state="normal")
        self.textbox.insert("end", ts, "timestamp")
        self.textbox.insert("end", f"{message}\n", tag)
        self.textbox.see("end")
        self.textbox.configure(state="disabled")

    def safe_log(self, message: str):
        self.after(0, lambda: self.write_log(message))

    def safe_progress(self, current, total):
        self.after(0, lambda: self.progressbar.set(current / total))
        self.after(0, lambda: self.status_label.configure(text=f"Processing course {current} of {total}..."))

    def update_timer(self):
        if self.btn_run.cget("state") == "disabled" and not self.stop_event.is_set():
            elapsed = int(time.time() - self.start_time)
            mins, secs = divmod(elapsed, 60)
            self.timer_label.configure(text=f"Time: {mins:02d}:{secs:02d}")
            self.after(1000, self.update_timer)

    def selected_tabs(self):
        choice = self.tab_menu.get()
        if choice == ALL_TABS:
            return None
        return [t for t in TABS if TAB_TITLES[t] == choice]

    def start_report(self):
        try:
            course_ids = parse_course_ids(self.entry_courses.get())
        except ValueError as e:
            self.write_log(f"ERROR: {e}")
            return

        # Save in config.ini
        if not self.app_config.has_section('REPORT'):
            self.app_config.add_section('REPORT')
        self.app_config.set('REPORT', 'last_courses', ", ".join(str(c) for c in course_ids))
        with open(CONFIG_PATH, 'w') as f: self.app_config.write(f)

        self.btn_run.configure(state="disabled", text="RUNNING...", fg_color="#9CA3AF")
        self.entry_courses.configure(state="disabled")
        self.progressbar.set(0)
        self.textbox.configure(state="normal")
        self.textbox.delete("1.0", "end")
        self.textbox.configure(state="disabled")

        self.stop_event.clear()
        self.start_time = time.time()
        self.update_timer()
        threading.Thread(target=self.run_report_worker, args=(course_ids, self.selected_tabs()), daemon=True).start()

    def run_report_worker(self, course_ids, tabs):
        try:
            run_report(course_ids, tabs=tabs, progress_callback=self.safe_progress,
                       log_callback=self.safe_log, stop_event=self.stop_event)
            if not self.stop_event.is_set():
                self.after(0, lambda: self.status_label.configure(text="Status: Finished", text_color=LOG_OK))
                self.after(0, lambda: self.progressbar.set(1.0))
        except Exception as e:
            self.safe_log(f"ERROR: {e}")
            self.after(0, lambda: self.status_label.configure(text="Status: Failed", text_color=LOG_ERROR))
        finally:
            if not self.stop_event.is_set():
                self.after(0, self.reset_ui)

    def reset_ui(self):
        self.btn_run.configure(state="normal", text="BUILD REPORT", fg_color=ACCENT_ORANGE)
        self.entry_courses.configure(state="normal")

    def on_closing(self):
        if self.btn_run.cget("state") == "disabled":
            self.stop_event.set()
            self.safe_log("Stopping report. Closing...")
            self.after(1500, lambda: os._exit(0))
        else:
            self.destroy()
            os._exit(0)

if __name__ == "__main__":
    app = ReportApp()
    app.mainloop()
