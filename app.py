# app.py
"""
Entry point of the JSON Sync Diff web application: configures logging, loads the
persisted instances, sessions and comparison types, and serves the PyWebIO UI.
"""
from pywebio.output import toast
from pywebio import start_server, config
import os

import about
from app_logging import setup_logger  # Setup logger and log storage
from core_operations import JsonStore, FILES_DIRECTORY

# Import the class-based modules
from project_logic import ProjectLogic
from project_ui import ProjectUI


# Console and file logging; the file is also shown in the UI log popup.
logger = setup_logger(enable_logging=True, console_logging=True, file_logging=True)

# Server settings, from environment variables or defaults.
APP_PORT: int = int(os.getenv("JSD_PORT", "8080"))
APP_DEBUG: bool = os.getenv("JSD_DEBUG", "false").lower() in ("1", "true", "yes")

# Shared project state, created once the server starts.
project_logic: ProjectLogic = None

# Output scope every screen of the UI renders into.
app_scope_name: str = "app"

CSS_STYLE = """
.top-gradient-bar { height: 4px; background: linear-gradient(90deg, #28a745, #ffc107, #dc3545); }
.pywebio { padding-top: 0; }
"""


def app() -> None:
    """
    Runs one browser session.

    Every browser session shares the same ProjectLogic, which serializes changes to the
    persisted state, and gets its own ProjectUI.
    """
    logger.info("New PyWebIO session started.")
    try:
        # Instantiate the ProjectUI class, injecting the project logic and the application scope name.
        project_ui_instance: ProjectUI = ProjectUI(project_logic, app_scope_name)

        project_ui_instance.app_main_menu()

    except Exception as e:
        # Any unhandled error ends the session with a persistent toast.
        logger.exception(f"Unhandled error in PyWebIO session: {e}")
        toast(f"An unexpected error occurred during startup: {e}", color="error", duration=0)


if __name__ == "__main__":
    """
    Loads the shared state and starts the PyWebIO server.
    """
    logger.info(f"{about.APP_INFO['name']} {about.APP_INFO['version']} started. Data directory: {FILES_DIRECTORY}")
    project_logic = ProjectLogic(JsonStore(FILES_DIRECTORY))
    config(title=about.APP_INFO["name"], description=about.APP_INFO["description"], css_style=CSS_STYLE)
    start_server(app, port=APP_PORT, debug=APP_DEBUG)
