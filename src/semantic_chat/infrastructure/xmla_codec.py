"""
XMLA/SOAP envelope codec.

Builds the two outbound envelope kinds (Execute a statement, Discover
schema rowsets) and decodes response envelopes into flat rows.

Every value that comes from outside (statement text, catalog name,
request type, restriction values) goes through escape_xml() before it
is interpolated. Restriction keys become element names, so they are
checked against the XML name grammar instead of being escaped.

Decoding:
- A SOAP Fault (or an XMLA Messages/Error block) is detected first and
  raised as XMLAFaultError, even when row elements are also present.
- Otherwise every <row> element becomes a dict of child tag -> text
  content, in document order. Rows may have different child sets.
- Element matching ignores namespaces (servers differ in prefixes).
"""

import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..config_constants import SOAP_ENVELOPE_NAMESPACE, XMLA_NAMESPACE
from ..domain.errors import XMLAFaultError, XMLAResponseError

# Column names such as "Sales[Amount]" are not XML names; servers encode
# offending characters as _xHHHH_ (XmlConvert encoding)
_ENCODED_NAME_RE = re.compile(r"_x([0-9A-Fa-f]{4})_")
_ENCODED_RUN_RE = re.compile(r"(?:_x[0-9A-Fa-f]{4}_)+")
_XML_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9._-]*$")
_XML_NAME_CHAR_RE = re.compile(r"[A-Za-z0-9._-]")

# Element names cannot be empty; an empty column name travels as this
_EMPTY_NAME = "_x_"

_STATEMENT_RE = re.compile(r"<Statement>([\s\S]*?)</Statement>")
_CATALOG_RE = re.compile(r"<Catalog>([\s\S]*?)</Catalog>")

_ENVELOPE_OPEN = f"""<?xml version="1.0" encoding="UTF-8"?>
<soap:Envelope xmlns:soap="{SOAP_ENVELOPE_NAMESPACE}"
               xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
               xmlns:xsd="http://www.w3.org/2001/XMLSchema">
  <soap:Body>"""

_ENVELOPE_CLOSE = """
  </soap:Body>
</soap:Envelope>"""


# =============================================================================
# Escaping
# =============================================================================


def escape_xml(value: Any) -> str:
    """
    Escape the five XML special characters.

    None and "" become ""; other scalars are stringified first.
    """
    if value is None or value == "":
        return ""
    return (
        str(value)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def unescape_xml(text: Optional[str]) -> str:
    """Reverse escape_xml(); &amp; is replaced last."""
    if not text:
        return ""
    return (
        text.replace("&apos;", "'")
        .replace("&quot;", '"')
        .replace("&gt;", ">")
        .replace("&lt;", "<")
        .replace("&amp;", "&")
    )


def _encode_char(char: str) -> str:
    code = ord(char)
    if code > 0xFFFF:
        # Outside the BMP: one _xHHHH_ per UTF-16 surrogate
        code -= 0x10000
        return f"_x{0xD800 + (code >> 10):04X}__x{0xDC00 + (code & 0x3FF):04X}_"
    return f"_x{code:04X}_"


def encode_xml_name(name: str) -> str:
    """Encode a column name into a valid element name (_xHHHH_ for bad characters)."""
    if not name:
        return _EMPTY_NAME
    if name == _EMPTY_NAME:
        return "_x005F_x_"
    if _XML_NAME_RE.match(name) and not _ENCODED_NAME_RE.search(name):
        return name

    encoded = []
    for index, char in enumerate(name):
        valid = _XML_NAME_CHAR_RE.match(char) and not (index == 0 and not (char.isalpha() or char == "_"))
        if valid and not (char == "_" and _ENCODED_NAME_RE.match(name, index)):
            encoded.append(char)
        else:
            encoded.append(_encode_char(char))
    return "".join(encoded)


def _decode_run(match: "re.Match[str]") -> str:
    data = b"".join(int(unit, 16).to_bytes(2, "big") for unit in _ENCODED_NAME_RE.findall(match.group(0)))
    return data.decode("utf-16-be", errors="surrogatepass")


def decode_xml_name(name: str) -> str:
    """Decode _xHHHH_ sequences (surrogate pairs included) back to characters."""
    if name == _EMPTY_NAME:
        return ""
    return _ENCODED_RUN_RE.sub(_decode_run, name)


# =============================================================================
# Request envelopes
# =============================================================================


def build_execute_request(statement: str, catalog: str) -> str:
    """
    Build an Execute envelope for a DAX or DMV statement.

    Args:
        statement: Query text (escaped here)
        catalog: Database (catalog) name (escaped here)
    """
    return f"""{_ENVELOPE_OPEN}
    <Execute xmlns="{XMLA_NAMESPACE}">
      <Command>
        <Statement>{escape_xml(statement)}</Statement>
      </Command>
      <Properties>
        <PropertyList>
          <Catalog>{escape_xml(catalog)}</Catalog>
          <Format>Tabular</Format>
        </PropertyList>
      </Properties>
    </Execute>{_ENVELOPE_CLOSE}"""


def build_discover_request(
    request_type: str,
    catalog: str,
    restrictions: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Build a Discover envelope for a schema rowset.

    Args:
        request_type: Rowset name, e.g. "TMSCHEMA_TABLES"
        catalog: Database (catalog) name
        restrictions: Restriction element name -> value

    Raises:
        ValueError: If a restriction key is not a valid XML element name
    """
    restriction_list = ""
    for key, value in (restrictions or {}).items():
        if not _XML_NAME_RE.match(key):
            raise ValueError(f"Invalid restriction name: {key!r}")
        restriction_list += f"<{key}>{escape_xml(value)}</{key}>"

    return f"""{_ENVELOPE_OPEN}
    <Discover xmlns="{XMLA_NAMESPACE}">
      <RequestType>{escape_xml(request_type)}</RequestType>
      <Restrictions>
        <RestrictionList>{restriction_list}</RestrictionList>
      </Restrictions>
      <Properties>
        <PropertyList>
          <Catalog>{escape_xml(catalog)}</Catalog>
        </PropertyList>
      </Properties>
    </Discover>{_ENVELOPE_CLOSE}"""


def extract_statement(envelope: str) -> str:
    """Return the unescaped, trimmed statement of an Execute envelope."""
    match = _STATEMENT_RE.search(envelope)
    if not match or not match.group(1):
        raise XMLAResponseError("Could not extract query from SOAP body")
    return unescape_xml(match.group(1)).strip()


def extract_catalog(envelope: str) -> str:
    """Return the unescaped catalog name of an envelope ("" when absent)."""
    match = _CATALOG_RE.search(envelope)
    return unescape_xml(match.group(1)) if match else ""


# =============================================================================
# Responses
# =============================================================================


def encode_rowset(rows: Iterable[Mapping[str, Any]]) -> str:
    """
    Render rows as a <root><row>...</row></root> document.

    Used to turn native bridge answers into the same shape the HTTP
    endpoint returns, so both feed decode_response(). None values become
    empty elements.
    """
    parts = ['<?xml version="1.0" encoding="utf-8"?>',
             '<root xmlns:xsd="http://www.w3.org/2001/XMLSchema">']
    for row in rows:
        parts.append("<row>")
        for key, value in row.items():
            tag = encode_xml_name(str(key))
            parts.append(f"<{tag}>{escape_xml(value)}</{tag}>")
        parts.append("</row>")
    parts.append("</root>")
    return "".join(parts)


def _local_name(tag: Any) -> str:
    # Comments and processing instructions have non-string tags
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _find_first(root: ET.Element, name: str) -> Optional[ET.Element]:
    for element in root.iter():
        if _local_name(element.tag) == name:
            return element
    return None


def _raise_for_fault(root: ET.Element) -> None:
    fault = _find_first(root, "Fault")
    if fault is not None:
        fault_string_el = _find_first(fault, "faultstring")
        fault_string = (
            "".join(fault_string_el.itertext()).strip()
            if fault_string_el is not None else ""
        )
        raise XMLAFaultError(fault_string or "Unknown SOAP fault")

    # XMLA also reports execution errors as Messages/Error inside a normal body
    messages = _find_first(root, "Messages")
    if messages is not None:
        error = _find_first(messages, "Error")
        if error is not None:
            description = error.get("Description") or "".join(error.itertext()).strip()
            raise XMLAFaultError(
                description or "Unknown XMLA error",
                details={"error_code": error.get("ErrorCode")},
            )


def decode_response(xml_text: str | bytes) -> List[Dict[str, str]]:
    """
    Decode a response envelope into rows.

    Raises:
        XMLAFaultError: If the envelope carries a fault (checked before rows)
        XMLAResponseError: If the text is not well-formed XML
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise XMLAResponseError(f"Malformed XMLA response: {e}") from e

    _raise_for_fault(root)

    rows: List[Dict[str, str]] = []
    for element in root.iter():
        if _local_name(element.tag) != "row":
            continue
        row: Dict[str, str] = {}
        for child in element:
            name = _local_name(child.tag)
            if name:
                row[decode_xml_name(name)] = "".join(child.itertext())
        rows.append(row)

    return rows
