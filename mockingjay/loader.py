"""Load and validate endpoint and behavior files (YAML or JSON)."""

import json
import os
from typing import List

import yaml

from mockingjay.models import Behavior, Endpoint, RequestSpec, ResponseSpec
from mockingjay.selector import BehaviorConfigError, validate_behaviors


class ConfigValidationError(Exception):
    """Raised when an endpoint or behavior file fails validation."""


_BEHAVIOR_KEYS = {"frequency", "body", "delay", "status", "garbage"}


def load_endpoints(path: str) -> List[Endpoint]:
    """Load the endpoint contracts from a YAML or JSON file.

    Args:
        path: Path to the endpoints file.

    Returns:
        The endpoints, in file order.

    Raises:
        ConfigValidationError: If the file is missing, unreadable, or invalid.
    """
    return parse_endpoints(_read_document(path))


def endpoints_from_yaml(text: str) -> List[Endpoint]:
    return parse_endpoints(_parse_yaml(text))


def parse_endpoints(raw) -> List[Endpoint]:
    """Construct and validate endpoints from an already-parsed document."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigValidationError("endpoints must be a list at the top level")

    errors: List[str] = []
    endpoints = []
    seen = set()
    for i, ep in enumerate(raw):
        if not isinstance(ep, dict):
            errors.append(f"endpoints[{i}] must be a mapping")
            continue

        name = ep.get("name")
        if not name or not isinstance(name, str):
            errors.append(f"endpoints[{i}].name is required and must be a non-empty string")
        elif name in seen:
            errors.append(f"endpoints[{i}].name {name!r} is used more than once")
        else:
            seen.add(name)

        request = _parse_request(ep.get("request"), f"endpoints[{i}].request", errors)
        response = _parse_response(ep.get("response"), f"endpoints[{i}].response", errors)
        if request is not None and response is not None:
            endpoints.append(Endpoint(name=name, request=request, response=response))

    if errors:
        raise ConfigValidationError(
            "endpoint validation failed:\n  - " + "\n  - ".join(errors)
        )
    return endpoints


def load_behaviors(path: str) -> List[Behavior]:
    """Load a monkey behavior table from a YAML or JSON file.

    Raises:
        ConfigValidationError: If the file is missing, unreadable, or invalid.
    """
    return parse_behaviors(_read_document(path))


def behaviors_from_yaml(text: str) -> List[Behavior]:
    return parse_behaviors(_parse_yaml(text))


def parse_behaviors(raw) -> List[Behavior]:
    """Construct and validate a behavior table from an already-parsed document."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigValidationError("behaviors must be a list at the top level")

    errors: List[str] = []
    behaviors = []
    for i, record in enumerate(raw):
        if not isinstance(record, dict):
            errors.append(f"behaviors[{i}] must be a mapping")
            continue

        unknown = sorted(set(record) - _BEHAVIOR_KEYS)
        if unknown:
            errors.append(f"behaviors[{i}] has unknown fields: {', '.join(map(str, unknown))}")
        if "frequency" not in record:
            errors.append(f"behaviors[{i}].frequency is required")
            continue

        behavior = Behavior(
            frequency=record["frequency"],
            body=record.get("body"),
            delay=record.get("delay"),
            status=record.get("status"),
            garbage=record.get("garbage"),
        )
        if not behavior.effects():
            errors.append(f"behaviors[{i}] must set one of body, delay, status, garbage")
            continue
        behaviors.append(behavior)

    if not errors:
        try:
            validate_behaviors(behaviors)
        except BehaviorConfigError as exc:
            errors.append(str(exc))

    if errors:
        raise ConfigValidationError(
            "behavior validation failed:\n  - " + "\n  - ".join(errors)
        )
    return behaviors


# -- internal helpers ---------------------------------------------------------


def _read_document(path: str):
    if not os.path.isfile(path):
        raise ConfigValidationError(f"config file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    try:
        with open(path, "r") as f:
            if ext in (".yaml", ".yml"):
                return yaml.safe_load(f)
            elif ext == ".json":
                return json.load(f)
            else:
                raise ConfigValidationError(
                    f"unsupported file extension: {ext} (expected .yaml, .yml, or .json)"
                )
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigValidationError(f"failed to parse {path}: {exc}") from exc


def _parse_yaml(text: str):
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"failed to parse YAML: {exc}") from exc


def _parse_request(raw, where: str, errors: List[str]):
    if not isinstance(raw, dict):
        errors.append(f"{where} is required and must be a mapping")
        return None

    uri = raw.get("uri")
    if not uri or not isinstance(uri, str):
        errors.append(f"{where}.uri is required and must be a string")
        return None
    if not uri.startswith("/"):
        errors.append(f"{where}.uri must start with '/', got {uri!r}")

    method = raw.get("method", "GET")
    if not method or not isinstance(method, str):
        errors.append(f"{where}.method must be a non-empty string")
        method = "GET"

    headers = _parse_headers(raw.get("headers"), f"{where}.headers", errors)

    body = raw.get("body")
    if body is not None and not isinstance(body, str):
        errors.append(f"{where}.body must be a string")
        body = None

    return RequestSpec(uri=uri, method=method.upper(), headers=headers, body=body)


def _parse_response(raw, where: str, errors: List[str]):
    if not isinstance(raw, dict):
        errors.append(f"{where} is required and must be a mapping")
        return None

    code = raw.get("code")
    if isinstance(code, bool) or not isinstance(code, int):
        errors.append(f"{where}.code is required and must be an integer")
        return None

    body = raw.get("body", "")
    if body is None:
        body = ""
    if not isinstance(body, str):
        errors.append(f"{where}.body must be a string")
        body = ""

    headers = _parse_headers(raw.get("headers"), f"{where}.headers", errors)
    return ResponseSpec(code=code, body=body, headers=headers)


def _parse_headers(raw, where: str, errors: List[str]):
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        errors.append(f"{where} must be a mapping")
        return {}
    headers = {}
    for k, v in raw.items():
        name, value = str(k), str(v)
        if not (name.isascii() and value.isascii()):
            errors.append(f"{where}.{name} must contain only ASCII characters")
            continue
        headers[name] = value
    return headers
