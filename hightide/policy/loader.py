"""Policy file loader.

Reads the XML policy file into a PolicySet:

  <configuration>
    <srcPath name="/source/path">
      <property><name>replication</name><value>3</value></property>
      <property><name>modTimePeriod</name><value>3600000</value></property>
      <destPath name="/dest/path">
        <property><name>replication</name><value>2</value></property>
      </destPath>
    </srcPath>
  </configuration>

Tag and attribute names match case-insensitively, comments are dropped by
the parser, and xi:include directives are expanded relative to the file.
Any structural problem rejects the whole document; nothing is returned
until every policy in it has been built and validated.
"""

import logging
import os
import xml.etree.ElementTree as ET
from xml.etree import ElementInclude

from hightide.policy.errors import ConfigFormatError, ConfigNotFoundError
from hightide.policy.types import Destination, Policy, PolicySet
from hightide.policy.validation import validate_all_policies

logger = logging.getLogger(__name__)

XINCLUDE_TAG = ElementInclude.XINCLUDE_INCLUDE


def _local(tag) -> str:
    """Lower-cased tag name without any {namespace} prefix."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].lower()


def _attribute(element, name: str):
    for key, value in element.attrib.items():
        if _local(key) == name:
            return value
    return None


def _expand_includes(root, base_url, enabled: bool):
    if not enabled:
        for parent in root.iter():
            for child in list(parent):
                if child.tag == XINCLUDE_TAG:
                    logger.warning("XInclude disabled, ignoring include of %s",
                                   child.get("href"))
                    parent.remove(child)
        return
    try:
        ElementInclude.include(root, base_url=base_url)
    except (ElementInclude.FatalIncludeError, OSError, ET.ParseError, ValueError, LookupError) as exc:
        raise ConfigFormatError(f"Bad configuration file: include failed: {exc}") from exc


def _parse_property(element, owner: str):
    name = value = None
    for item in element:
        tag = _local(item.tag)
        if tag == "name":
            name = (item.text or "").strip()
        elif tag == "value":
            value = (item.text or "").strip()
    if name is None or value is None:
        raise ConfigFormatError(
            f"Bad configuration file: all properties of {owner} must have name and value"
        )
    return name, value


def _parse_dest_path(element, policy_name: str) -> Destination:
    path = _attribute(element, "name")
    if not path:
        raise ConfigFormatError(
            f"Bad configuration file: <destPath> under srcPath {policy_name} "
            "must have a 'name' attribute"
        )
    properties = {}
    for child in element:
        tag = _local(child.tag)
        if not tag:
            continue
        if tag != "property":
            raise ConfigFormatError(
                f"Bad configuration file: <destPath> can have only <property> children "
                f"but found {child.tag}"
            )
        name, value = _parse_property(child, f"destPath {path}")
        logger.debug("%s.%s = %s", policy_name, name, value)
        properties[name] = value
    return Destination(path=path, properties=properties)


def _parse_src_path(element) -> Policy:
    src_path = _attribute(element, "name")
    if not src_path:
        raise ConfigFormatError("Bad configuration file: srcPath node does not have a path")

    properties = {}
    destinations = []
    for child in element:
        tag = _local(child.tag)
        if not tag:
            continue
        if tag == "property":
            name, value = _parse_property(child, f"srcPath {src_path}")
            logger.debug("%s.%s = %s", src_path, name, value)
            properties[name] = value
        elif tag == "destpath":
            destinations.append(_parse_dest_path(child, src_path))
        else:
            raise ConfigFormatError(
                f"Bad configuration file: expecting <property> or <destPath> for srcPath "
                f"{src_path} but found {child.tag}"
            )
    return Policy(src_path=src_path, properties=properties, destinations=destinations)


def build_policy_set(root, source: str = "") -> PolicySet:
    """Convert a parsed <configuration> element into a validated PolicySet."""
    if _local(root.tag) != "configuration":
        raise ConfigFormatError(
            "Bad configuration file: top-level element not <configuration>"
        )

    policies = []
    seen = set()
    for element in root:
        tag = _local(element.tag)
        if not tag:
            continue
        if tag != "srcpath":
            raise ConfigFormatError(
                f"Bad configuration file: the top level item must be srcPath but found {element.tag}"
            )
        policy = _parse_src_path(element)
        if policy.name in seen:
            raise ConfigFormatError(
                f"Bad configuration file: srcPath {policy.name} is declared more than once"
            )
        seen.add(policy.name)
        policies.append(policy)

    validate_all_policies(policies)
    return PolicySet(policies=tuple(policies), source=source)


def parse_policies(text, source: str = "<string>", base_url=None, xinclude: bool = True) -> PolicySet:
    """Parse an in-memory policy document."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ConfigFormatError(f"Bad configuration file {source}: {exc}") from exc
    _expand_includes(root, base_url, xinclude)
    return build_policy_set(root, source=source)


def load_policies(path, xinclude: bool = True) -> PolicySet:
    """Read, parse and validate the policy file at ``path``.

    Raises ConfigNotFoundError if the file does not exist or cannot be read,
    ConfigFormatError or ConfigValidationError if its content is unusable.
    """
    path = os.fspath(path)
    if not os.path.exists(path):
        raise ConfigNotFoundError(f"Configuration file {path} does not exist.")

    logger.info("Reloading config file %s", path)
    try:
        tree = ET.parse(path)
    except ET.ParseError as exc:
        raise ConfigFormatError(f"Bad configuration file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigNotFoundError(f"Configuration file {path} cannot be read: {exc}") from exc

    root = tree.getroot()
    _expand_includes(root, path, xinclude)
    return build_policy_set(root, source=path)
