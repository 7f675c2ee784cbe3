"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Turn a flattened dependency set and merged styles into the path -> content
map consumed by the sandboxed preview compiler.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Mapping, Optional, Tuple

from registry_preview.models.components import (DEFAULT_REGISTRY,
                                                 FlatDependencySet,
                                                 MergedStyleBundle,
                                                 ResolvedComponent)

_LOGGER = logging.getLogger(__name__)

TAILWIND_CONFIG_PATH = "/tailwind.config.js"
GLOBAL_CSS_PATH = "/globals.css"
PACKAGE_JSON_PATH = "/package.json"
PROJECT_NAME = "component-project"

DEFAULT_NPM_DEPENDENCIES: Mapping[str, str] = {
    "react": "^18.2.0",
    "react-dom": "^18.2.0",
    "@radix-ui/react-select": "^2.0.0",
    "class-variance-authority": "^0.7.0",
    "clsx": "^2.1.0",
    "lucide-react": "^0.363.0",
    "tailwind-merge": "^2.1.0",
    "tailwindcss-animate": "^1.0.7",
}

INDEX_HTML = """\
<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Component Preview</title>
  </head>
  <body>
    <div id="root"></div>
  </body>
</html>
"""

INDEX_TSX = """\
import { StrictMode } from "react";
import { createRoot } from "react-dom/client";
import App from "./App";
import "./globals.css";

const rootElement = document.getElementById("root");
const root = createRoot(rootElement!);

root.render(
  <StrictMode>
    <App />
  </StrictMode>
);
"""

UTILS_TS = """\
import { type ClassValue, clsx } from "clsx"
import { twMerge } from "tailwind-merge"

export function cn(...inputs: ClassValue[]) {
  return twMerge(clsx(inputs))
}
"""

TSCONFIG = {
    "compilerOptions": {
        "jsx": "react-jsx",
        "esModuleInterop": True,
        "baseUrl": ".",
        "paths": {"@/*": ["./*"]},
    }
}


def component_file_paths(component: ResolvedComponent) -> Tuple[str, ...]:
    """Return the sandbox paths a component's code is written to."""
    slug = component.component_slug
    registry = component.registry or DEFAULT_REGISTRY
    if registry == "lib":
        return (f"/lib/{slug}.tsx",)
    if registry == "hooks":
        return (f"/components/hooks/{slug}.tsx", f"/hooks/{slug}.tsx")
    return (f"/components/{registry}/{slug}.tsx",)


def _dump_json(payload: object) -> str:
    return json.dumps(payload, indent=2) + "\n"


class SandboxAssembler:
    """Build the preview file map. Output depends only on the inputs."""

    def __init__(
        self,
        *,
        root_path: str = "/App.tsx",
        include_scaffold: bool = True,
        base_npm_dependencies: Mapping[str, str] = DEFAULT_NPM_DEPENDENCIES,
    ) -> None:
        if not root_path.startswith("/"):
            raise ValueError("root_path must start with '/'.")
        self.root_path = root_path
        self.include_scaffold = include_scaffold
        self.base_npm_dependencies = dict(base_npm_dependencies)

    def assemble(
        self,
        root_code: Optional[str],
        flat_set: FlatDependencySet,
        merged_styles: MergedStyleBundle,
        npm_dependencies: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, str]:
        files: Dict[str, str] = {}
        owners: Dict[str, str] = {}
        if root_code:
            files[self.root_path] = root_code
            owners[self.root_path] = "root"

        for identifier, component in flat_set.items():
            if not component.code:
                _LOGGER.warning("Component %s has no code; no file written", identifier)
                continue
            for path in component_file_paths(component):
                if path in owners:
                    _LOGGER.warning(
                        "Path %s is already provided by %s; skipping %s",
                        path,
                        owners[path],
                        identifier,
                    )
                    continue
                files[path] = component.code
                owners[path] = identifier

        files[TAILWIND_CONFIG_PATH] = merged_styles.tailwind_config
        files[GLOBAL_CSS_PATH] = merged_styles.global_css
        files[PACKAGE_JSON_PATH] = _dump_json(
            {
                "name": PROJECT_NAME,
                "dependencies": self.collect_npm_dependencies(
                    flat_set, npm_dependencies
                ),
            }
        )

        if self.include_scaffold:
            scaffold = {
                "/index.html": INDEX_HTML,
                "/index.tsx": INDEX_TSX,
                "/tsconfig.json": _dump_json(TSCONFIG),
                "/lib/utils.ts": UTILS_TS,
            }
            for path, content in scaffold.items():
                files.setdefault(path, content)

        return {path: files[path] for path in sorted(files)}

    def collect_npm_dependencies(
        self,
        flat_set: FlatDependencySet,
        root_dependencies: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, str]:
        """Union of base, flattened and root npm dependencies.

        Applied in that order; the last version applied for a package wins.
        """
        dependencies = dict(self.base_npm_dependencies)
        for component in flat_set.values():
            dependencies.update(component.npm_dependencies)
        dependencies.update(root_dependencies or {})
        return {name: dependencies[name] for name in sorted(dependencies)}
