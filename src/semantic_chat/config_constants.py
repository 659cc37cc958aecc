from enum import Enum


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CHAT_MODELS(str, Enum):
    GPT_4 = "gpt-4"
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"


class XMLATransportKind(str, Enum):
    HTTP = "http"
    BRIDGE = "bridge"


OPENAI_CHAT_COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"

# -------------------------
# XMLA Constants
# -------------------------

XMLA_NAMESPACE = "urn:schemas-microsoft-com:xml-analysis"
SOAP_ENVELOPE_NAMESPACE = "http://schemas.xmlsoap.org/soap/envelope/"
XMLA_EXECUTE_SOAP_ACTION = '"urn:schemas-microsoft-com:xml-analysis:Execute"'

# Marker for raw schema rowset (DMV) probes; these are never auto-limited
SYSTEM_CATALOG_MARKER = "$SYSTEM"

# -------------------------
# Query Safety Defaults
# -------------------------

# Patterns that cause pathological server-side evaluation
DEFAULT_BLOCKED_PATTERNS = [
    r"CROSSJOIN\s*\(\s*ALL",
    r"GENERATE\s*\(\s*GENERATE",
    r"ADDCOLUMNS\s*\(\s*ADDCOLUMNS",
]

# Functions that blow up quadratically when nested inside themselves
DEFAULT_DANGEROUS_FUNCTIONS = [
    "UNION",
    "GENERATE",
    "NATURALLEFTOUTERJOIN",
    "NATURALINNERJOIN",
]
