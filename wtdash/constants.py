from pathlib import Path

STATE_DIR = Path.home() / ".config" / "wtdash"
CACHE_DIR = Path.home() / ".cache" / "wtdash"

PROJECT_CONFIG_NAME = ".gtrconfig"

TICK_MS = 100
ACTIVITY_POLL_MS = 1000
CAPTURE_INTERVAL_MS = 500
RESCAN_INTERVAL_MS = 2000

# Sessions with activity more recent than this count as "currently active".
IDLE_SECS = 3.0

FETCH_INTERVAL_S = 60
FETCH_TIMEOUT_S = 10

RECENT_COMMITS = 3
MAX_MODIFIED_FILES = 10

SHELL_NAMES = {"bash", "zsh", "fish", "sh", "dash", "ksh", "tcsh", "csh", "nu", "login"}

# Foreground programs that sit waiting on the user and never need attention.
PASSIVE_COMMANDS = {
    "vim", "nvim", "vi", "nano", "emacs", "less", "more", "man",
    "htop", "top", "btop", "watch", "tail", "tig", "lazygit",
}
