"""
XML rule model loader.

Sample:

    <?xml version="1.0"?>
    <model version="1.0" xmlns:var="urn:rules:var">
      <rule priority="high">
        <qualifier>*true*</qualifier>
        <key>color</key>
        <value>green</value>
      </rule>

      <rule priority="high">
        <qualifier>task = 'edit'</qualifier>
        <key>color</key>
        <var:value>backgroundColor</var:value>
      </rule>

      <rule priority="low">
        <qualifier>*true*</qualifier>
        <action>color = backgroundColor</action>
      </rule>

      <rule>*true* => color = 'green'; high</rule>

      <multirule priority="normal">
        <qualifier>task = 'edit'</qualifier>
        <qualifier>task = 'new'</qualifier>
        <action>allowCollapsing = false</action>
      </multirule>
    </model>

Tag aliases: qualifier/q, action/a, priority/p, value/v, var:value/var:v.
Documents may use the ``var`` prefix without declaring it; the loader then
binds it to VAR_NAMESPACE on the root element before parsing.
"""

import re
import xml.etree.ElementTree as ET
from typing import Any, Iterable, List, Optional, Union

from shared.errors import ModelLoadError
from shared.logging import get_logger

from ..qualifiers.base import AndQualifier, TRUE_QUALIFIER
from .engine import RuleModel
from .models import Assignment, CompoundAction, KeyAssignment, Rule, RulePriority
from .parser import RuleParser, index_skipping_quotes, parse_priority, priority_separator_index

VAR_NAMESPACE = "urn:rules:var"

_ROOT_TAG_RE = re.compile(r"<[A-Za-z_][\w.\-:]*")
_ROOT_TAG_BYTES_RE = re.compile(rb"<[A-Za-z_][\w.\-:]*")


def _bind_var_prefix(document: Union[str, bytes]) -> Union[str, bytes]:
    """Declare the var prefix on the root element if the document uses it undeclared."""
    declaration = f' xmlns:var="{VAR_NAMESPACE}"'
    if isinstance(document, bytes):
        pattern, used, bound, close = _ROOT_TAG_BYTES_RE, b"<var:", b"xmlns:var", b">"
        declaration = declaration.encode("ascii")
    else:
        pattern, used, bound, close = _ROOT_TAG_RE, "<var:", "xmlns:var", ">"

    if used not in document:
        return document
    root = pattern.search(document)
    if root is None or bound in document[root.start():document.find(close, root.end())]:
        return document
    return document[:root.end()] + declaration + document[root.end():]


def _local_name(tag: Any) -> tuple:
    if not isinstance(tag, str):
        return None, None
    if tag.startswith("{"):
        namespace, _, local = tag[1:].partition("}")
        return namespace, local
    return None, tag


def _matches_tag(element: ET.Element, name: str) -> bool:
    namespace, local = _local_name(element.tag)
    if local is None:
        return False
    prefix, _, wanted = name.rpartition(":")
    if prefix:
        return namespace is not None and local == wanted
    return namespace is None and local == wanted


def _descendants(element: ET.Element, *names: str) -> List[ET.Element]:
    """Descendants with the first tag name (or alias) that has any match."""
    for name in names:
        found = [e for e in element.iter() if e is not element and _matches_tag(e, name)]
        if found:
            return found
    return []


def _text(element: ET.Element) -> str:
    return "".join(element.itertext())


def _join_trimmed_texts(elements: Iterable[ET.Element], separator: str) -> Optional[str]:
    texts = [t for t in (_text(e).strip() for e in elements) if t]
    return separator.join(texts) if texts else None


class RuleModelLoader:
    """Builds a RuleModel from an XML document."""

    def __init__(self, parser: Optional[RuleParser] = None):
        self.logger = get_logger("rules.loader")
        self.parser = parser or RuleParser()
        self.last_exception: Optional[Exception] = None

    def clear(self) -> None:
        self.last_exception = None

    # documents

    def load_model_from_string(self, text: str) -> Optional[RuleModel]:
        try:
            root = ET.fromstring(_bind_var_prefix(text))
        except ET.ParseError as e:
            self._add_error("XML error when loading model", e)
            return None
        return self.load_model_from_element(root)

    def load_model_from_file(self, path: str) -> Optional[RuleModel]:
        self.logger.debug("Loading model", path=path)
        try:
            with open(path, "rb") as f:
                root = ET.fromstring(_bind_var_prefix(f.read()))
        except ET.ParseError as e:
            self._add_error(f"XML error when loading model resource: {path}", e)
            return None
        except OSError as e:
            self._add_error(f"IO error when loading model resource: {path}", e)
            return None

        model = self.load_model_from_element(root)
        self.logger.debug("Finished loading model", path=path, rules=len(model))
        return model

    def load_model_from_element(self, root: ET.Element) -> RuleModel:
        rules: List[Rule] = []

        for element in _descendants(root, "rule"):
            rule = self.load_rule_from_element(element)
            if rule is None:
                self.logger.error("Got no rule for element", text=_text(element).strip())
                continue
            rules.append(rule)

        for element in _descendants(root, "multirule"):
            rules.extend(self.load_multi_rules_from_element(element))

        return RuleModel(rules)

    # rules

    def load_rule_from_element(self, element: ET.Element) -> Optional[Rule]:
        qualifier_elements = _descendants(element, "qualifier", "q")
        action = self.load_action_of_rule(element)
        priority = self.load_priority_of_rule(element)
        key = _join_trimmed_texts(_descendants(element, "key"), ".")

        if not qualifier_elements and action is None and key is None:
            return self._load_text_rule(element, priority)

        qualifier = self.load_qualifiers_of_rule(element)
        if qualifier_elements and qualifier is None:
            return None

        action = self._resolve_action(element, action, key, "rule")
        if action is None:
            self.logger.error("Structured rule has no action", key=key)
            return None

        if priority is None:
            priority = RulePriority.NORMAL
        return Rule(qualifier or TRUE_QUALIFIER, action, priority)

    def load_multi_rules_from_element(self, element: ET.Element) -> List[Rule]:
        """One rule per qualifier child, all sharing action and priority."""
        action = self.load_action_of_rule(element)
        priority = self.load_priority_of_rule(element)
        key = _join_trimmed_texts(_descendants(element, "key"), ".")

        action = self._resolve_action(element, action, key, "multirule")
        if action is None:
            self.logger.error("Multirule has no action", key=key)
            return []

        if priority is None:
            priority = RulePriority.NORMAL

        qualifier_elements = _descendants(element, "qualifier", "q")
        if not qualifier_elements:
            self.logger.warning("Multirule tag has no qualifiers")
            return []

        rules = []
        for child in qualifier_elements:
            qualifier = self.parser.parse_qualifier(_text(child))
            if qualifier is None:
                self.logger.error("Could not parse multirule qualifier", qualifier=_text(child))
                continue
            rules.append(Rule(qualifier, action, priority))
        return rules

    def load_qualifiers_of_rule(self, element: ET.Element) -> Optional[Any]:
        children = _descendants(element, "qualifier", "q")
        if not children:
            return None

        qualifiers = []
        for child in children:
            qualifier = self.parser.parse_qualifier(_text(child))
            if qualifier is None:
                self.logger.error("Could not parse rule qualifier", qualifier=_text(child))
                return None
            qualifiers.append(qualifier)

        if len(qualifiers) == 1:
            return qualifiers[0]
        return AndQualifier(qualifiers)

    def load_action_of_rule(self, element: ET.Element) -> Optional[Any]:
        children = _descendants(element, "action", "a")
        if not children:
            return None

        actions = []
        for child in children:
            action = self.parser.parse_action(_text(child), child.get("class") or None)
            if action is None:
                self.logger.error("Could not parse rule action", action=_text(child))
                continue
            actions.append(action)
        return CompoundAction.for_actions(actions)

    def load_split_rule_action(self, element: ET.Element, key_path: str) -> Optional[Assignment]:
        values = _descendants(element, "value", "v")
        if values:
            return Assignment(key_path, _join_trimmed_texts(values, "") or "")

        variables = _descendants(element, "var:value", "var:v")
        if variables:
            return KeyAssignment(key_path, _join_trimmed_texts(variables, "."))

        self.logger.warning("Did not find value tag in rule", key_path=key_path)
        return None

    def load_priority_of_rule(self, element: ET.Element) -> Optional[int]:
        text = element.get("priority")
        if text:
            return parse_priority(text)

        children = _descendants(element, "priority", "p")
        if not children:
            return None
        if len(children) > 1:
            self.logger.error("Multiple priorities given for rule")
        return parse_priority(_text(children[0]))

    # support

    def _load_text_rule(self, element: ET.Element, priority: Optional[int]) -> Optional[Rule]:
        # child elements of a text rule can only be priority tags
        text = ((element.text or "") + "".join(child.tail or "" for child in element)).strip()
        if not text:
            self.logger.error("Found rule tag without recognisable content")
            return None

        if priority is not None:
            arrow = index_skipping_quotes(text, "=>")
            if arrow != -1 and priority_separator_index(text[arrow + 2:]) != -1:
                self.logger.warning("Rule text already has a priority, ignoring priority tag", rule=text)
            else:
                text = f"{text} ; {priority}"

        rule = self.parser.parse_rule(text)
        if rule is None:
            self.logger.error("Could not parse rule", rule=text)
        return rule

    def _resolve_action(self, element: ET.Element, action: Optional[Any],
                        key: Optional[str], tag: str) -> Optional[Any]:
        if key is not None and action is not None:
            self.logger.warning("Rule has both 'key' and 'action' tags, using 'action'", tag=tag)
        elif key is not None:
            action = self.load_split_rule_action(element, key)
        return action

    def _add_error(self, reason: str, error: Exception) -> None:
        self.logger.error(reason, error=str(error))
        self.last_exception = ModelLoadError(reason, {"error": str(error)})
