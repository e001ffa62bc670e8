# about.py
"""Application metadata shown by the UI and logged at start-up."""

APP_INFO = {
    "name": "JSON Sync Diff",
    "version": "1.0.0",
    "description": (
        "Fetches JSON configuration payloads from several instances of the same service, "
        "reports the settings that differ between them and migrates selected values "
        "from one instance to the others."
    ),
    "repository": "",
}
