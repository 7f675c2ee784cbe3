"""REST API blueprint exposing resolution, previews and style merging."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from flask import Blueprint, current_app, jsonify, request

from registry_preview.config import ResolverSettings
from registry_preview.models.components import (StyleFragment,
                                                 parse_identifier)
from registry_preview.resolution.flatten import flatten
from registry_preview.resolution.matching import UnresolvedImport
from registry_preview.storage.errors import (ResolutionCancelledError,
                                             ServiceUnavailableError)
from registry_preview.styles.merger import StyleMerger

from . import get_service

api_bp = Blueprint("api", __name__)

_LOGGER = logging.getLogger(__name__)


def _json_error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def _as_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "t", "yes", "on"}


def _get_merger() -> StyleMerger:
    merger = current_app.config.get("STYLE_MERGER")
    if isinstance(merger, StyleMerger):
        return merger
    service = current_app.config.get("PREVIEW_SERVICE")
    if service is not None:
        return service.merger
    return StyleMerger(conflict_policy=ResolverSettings.from_env().conflict_policy)


def _string_list(value: Any, name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{name} must be an array of strings.")
    items = [item for item in value if item is not None]
    if not all(isinstance(item, str) for item in items):
        raise ValueError(f"{name} must be an array of strings.")
    return items


def _string_map(value: Any, name: str) -> Optional[Dict[str, str]]:
    if value is None:
        return None
    if not isinstance(value, dict) or not all(
        isinstance(version, str) for version in value.values()
    ):
        raise ValueError(f"{name} must be an object of version strings.")
    return dict(value)


@api_bp.errorhandler(ServiceUnavailableError)
def service_unavailable(exc: ServiceUnavailableError):
    _LOGGER.error("Backing service unavailable: %s", exc)
    return _json_error(str(exc), 503)


@api_bp.errorhandler(ResolutionCancelledError)
def resolution_cancelled(exc: ResolutionCancelledError):
    _LOGGER.error("Dependency resolution aborted: %s", exc)
    return _json_error(str(exc), 503)


@api_bp.get("/health")
def healthcheck() -> tuple[str, int]:
    """Simple readiness check used by tests or deployment."""
    return jsonify({"status": "ok"}), 200


@api_bp.get("/r/<author>/<slug>")
def resolve_component(author: str, slug: str):
    """Return the resolved tree, flattened set and merged styles."""
    identifier = f"{author}/{slug}"
    if parse_identifier(identifier) is None:
        return _json_error("Component identifier is invalid.", 400)

    service = get_service()
    max_depth_raw = request.args.get("maxDepth")
    try:
        max_depth = (
            int(max_depth_raw) if max_depth_raw is not None else service.max_depth
        )
    except ValueError:
        return _json_error("maxDepth must be an integer.", 400)
    if max_depth < 1:
        return _json_error("maxDepth must be at least 1.", 400)
    include_root = _as_bool(request.args.get("includeRoot"))

    root = service.resolve(identifier, max_depth=max_depth)
    if root is None:
        return _json_error("Component not found.", 404)

    dependencies = flatten(root)
    npm_dependencies: Dict[str, str] = {}
    for component in dependencies.values():
        npm_dependencies.update(component.npm_dependencies)
    npm_dependencies.update(root.npm_dependencies)
    styles = service.merger.merge_components([root, *dependencies.values()])
    listed = flatten(root, exclude_root=not include_root)

    return jsonify(
        {
            "identifier": root.identifier,
            "tree": root.to_dict(),
            "dependencies": list(listed),
            "npmDependencies": dict(sorted(npm_dependencies.items())),
            "tailwindConfig": styles.tailwind_config,
            "globalCss": styles.global_css,
        }
    ), 200


@api_bp.post("/preview")
def build_preview():
    """Assemble sandbox files for a published component or pasted code."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _json_error("Request body must be a JSON object.", 400)

    service = get_service()
    identifier = payload.get("identifier")
    if identifier is not None:
        if parse_identifier(identifier) is None:
            return _json_error("Component identifier is invalid.", 400)
        bundle = service.build_preview(identifier)
        if bundle.root is None:
            return _json_error("Component not found.", 404)
        return jsonify(bundle.to_dict()), 200

    code = payload.get("code")
    if not isinstance(code, str) or not code.strip():
        return _json_error("Either identifier or code is required.", 400)
    imports = payload.get("unresolvedImports") or []
    try:
        registry_dependencies = _string_list(
            payload.get("registryDependencies"), "registryDependencies"
        )
        npm_dependencies = _string_map(
            payload.get("npmDependencies"), "npmDependencies"
        )
        if not isinstance(imports, list) or not all(
            isinstance(item, dict) for item in imports
        ):
            raise ValueError("unresolvedImports must be an array of objects.")
        imports = [UnresolvedImport.from_dict(item) for item in imports]
        shadcn_components = _string_list(
            payload.get("shadcnComponents"), "shadcnComponents"
        )
    except ValueError as exc:
        return _json_error(str(exc), 400)

    style = None
    if payload.get("tailwindConfig") or payload.get("globalCss"):
        style = StyleFragment(
            tailwind_config=payload.get("tailwindConfig"),
            global_css=payload.get("globalCss"),
        )
    if imports and service.matcher is None:
        return _json_error("Import matching is not configured.", 400)

    bundle = service.build_preview_for_code(
        code,
        registry_dependencies,
        npm_dependencies,
        style,
        unresolved_imports=imports,
        shadcn_components=shadcn_components,
    )
    return jsonify(bundle.to_dict()), 200


@api_bp.post("/merge-styles/tailwind")
def merge_tailwind():
    """Merge dependency Tailwind configs onto a default config."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _json_error("Request body must be a JSON object.", 400)
    try:
        configs = _string_list(payload.get("dependencyConfigs"), "dependencyConfigs")
    except ValueError as exc:
        return _json_error(str(exc), 400)

    merger = _get_merger()
    base = payload.get("defaultConfig")
    if base is not None and not isinstance(base, str):
        return _json_error("defaultConfig must be a string.", 400)
    if base:
        merger = StyleMerger(
            base, merger.base_global_css, conflict_policy=merger.conflict_policy
        )
    merged = merger.merge_tailwind([config for config in configs if config.strip()])
    return jsonify({"tailwindConfig": merged}), 200


@api_bp.post("/merge-styles/globals")
def merge_globals():
    """Merge dependency global stylesheets onto a default stylesheet."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _json_error("Request body must be a JSON object.", 400)
    try:
        stylesheets = _string_list(
            payload.get("dependencyGlobalCss"), "dependencyGlobalCss"
        )
    except ValueError as exc:
        return _json_error(str(exc), 400)

    merger = _get_merger()
    base = payload.get("defaultGlobalCss")
    if base is not None and not isinstance(base, str):
        return _json_error("defaultGlobalCss must be a string.", 400)
    if base:
        merger = StyleMerger(
            merger.base_tailwind_config, base, conflict_policy=merger.conflict_policy
        )
    merged = merger.merge_css([css for css in stylesheets if css.strip()])
    return jsonify({"globalCss": merged}), 200
