# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
See src/tasklink/config.py for defaults and parsing rules.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKLINK_APP_NAME": "App display name (default: tasklink).",
    "TASKLINK_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    "TASKLINK_DATA_DIR": "Local data directory for logs (default: .local/tasklink).",
    "TASKLINK_CONSOLE_ENABLED": "Run the interactive console (true/false). Off => watch queries only.",
    # Vault
    "TASKLINK_VAULT_ROOT": "Folder of Markdown notes to work on (default: current directory).",
    "TASKLINK_TASKS_FOLDER": "Vault folder new task notes are written to (default: Tasks).",
    "TASKLINK_QUERY_EXTENSION": "Extension of saved-query definitions (default: .base).",
    # Task identification
    "TASKLINK_TASK_IDENTIFICATION": "How a note is recognised as a task: tag | property (default: tag).",
    "TASKLINK_TASK_TAG": "Tag used by the tag method (default: task).",
    "TASKLINK_TASK_PROPERTY_NAME": "Property used by the property method (default: isTask).",
    "TASKLINK_TASK_PROPERTY_VALUE": "Value written / matched by the property method (default: true).",
    # Defaults
    "TASKLINK_DEFAULT_STATUS": "Status given to new / converted tasks (default: open).",
    "TASKLINK_DEFAULT_PRIORITY": "Priority given to new / converted tasks (default: normal).",
    "TASKLINK_PROJECTS_FIELD": "Link-list property that points tasks at their notes (default: projects).",
    # Query watcher
    "TASKLINK_WATCHER_ENABLED": "Watch saved queries flagged notify: true (true/false).",
    "TASKLINK_DEBOUNCE_SECONDS": "Quiet period before re-evaluating after a change (default: 1.0).",
    "TASKLINK_STARTUP_DELAY_SECONDS": "Delay before the first query scan (default: 5.0).",
    "TASKLINK_RESCAN_INTERVAL_SECONDS": "Periodic full rescan interval (default: 300).",
    "TASKLINK_POLL_INTERVAL_SECONDS": "Vault change polling interval (default: 2.0).",
    "TASKLINK_MAX_DISPLAY_ITEMS": "Items listed per notification before '... and N more' (default: 5).",
}
