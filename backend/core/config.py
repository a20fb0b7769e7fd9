import os

DATA_DIR = os.environ.get("DATA_DIR", os.path.abspath("./data"))
SERVERS_FILE = os.environ.get("SERVERS_FILE", os.path.join(DATA_DIR, "servers.json"))
LOADS_FILE = os.environ.get("LOADS_FILE", os.path.join(DATA_DIR, "loads.json"))

# --- Panel Configuration ---
PANEL_TIMEOUT = float(os.environ.get("PANEL_TIMEOUT", "10"))  # per HTTP operation
NODE_TIMEOUT = float(os.environ.get("NODE_TIMEOUT", "15"))  # login + list for one node

# --- Key Configuration ---
BRAND_LABEL = os.environ.get("BRAND_LABEL", "HyperVPN")
DEFAULT_PERIOD_MONTHS = int(os.environ.get("DEFAULT_PERIOD_MONTHS", "1"))

# --- Server Configuration ---
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
