"""
WaiterRegistry - Load and validate waiter definitions from storage.

The registry provides:
- Loading WaiterModels from YAML or JSON files in a definitions directory
- Bundled definitions shipped with waitkit (waitkit/definitions)
- Caching loaded definitions
- Validation at load time (malformed acceptors fail here, never mid-wait)
- Content-addressable lookup via SHA256 hash
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

import yaml

from waitkit.errors import ConfigurationError, WaiterNotFoundError
from waitkit.schemas import WaiterDef, WaiterModel

logger = logging.getLogger(__name__)

# Definitions bundled with the package
BUILTIN_DEFINITIONS_DIR = Path(__file__).parent / "definitions"

DEFINITION_PATTERNS = ("*.yaml", "*.yml", "*.json")


def load_model_file(path: Path | str) -> WaiterModel:
    """
    Load a waiter model file (YAML or JSON).

    Args:
        path: Path to the file

    Returns:
        The parsed and validated WaiterModel

    Raises:
        ConfigurationError: If the file can't be read or is invalid
    """
    path = Path(path)
    suffix = path.suffix.lower()

    try:
        with open(path) as f:
            if suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            elif suffix == ".json":
                data = json.load(f)
            else:
                raise ConfigurationError(f"Unsupported file format: {suffix}")
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to load {path}: {e}") from e

    try:
        return WaiterModel.from_dict(data)
    except ConfigurationError as e:
        raise ConfigurationError(f"Invalid waiter model in {path}: {e}") from e


class WaiterRegistry:
    """
    Registry for loading and caching WaiterDefs.

    Loads every model file in the configured directories. Waiter names must
    be unique across all files.

    Example directory structure:
        definitions/
            cloudformation.yaml
            rds/
                clusters.json
    """

    def __init__(
        self,
        definitions_dirs: Optional[Iterable[Path | str]] = None,
        include_builtin: bool = True,
    ):
        """
        Initialize the registry.

        Args:
            definitions_dirs: Directories containing waiter model files
            include_builtin: Also load the definitions bundled with waitkit
        """
        dirs = [Path(d) for d in (definitions_dirs or [])]
        if include_builtin:
            dirs.insert(0, BUILTIN_DEFINITIONS_DIR)
        self._definitions_dirs = dirs
        self._cache: dict[str, WaiterDef] = {}
        self._sources: dict[str, Path] = {}
        self._hash_index: dict[str, str] = {}  # sha256 -> waiter name
        self._added: list[WaiterModel] = []
        self._loaded = False

    @property
    def definitions_dirs(self) -> list[Path]:
        """Get the definitions directory paths."""
        return list(self._definitions_dirs)

    def _definition_files(self) -> list[Path]:
        files: list[Path] = []
        for directory in self._definitions_dirs:
            if not directory.exists():
                logger.debug(f"Definitions directory does not exist: {directory}")
                continue
            for pattern in DEFINITION_PATTERNS:
                files.extend(
                    f for f in sorted(directory.glob(f"**/{pattern}"))
                    if "_deprecated" not in f.relative_to(directory).parts
                )
        return files

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.preload_all()

    def add_model(self, model: WaiterModel) -> None:
        """
        Register an in-memory model alongside the file definitions.

        Raises:
            ConfigurationError: If a waiter name is already registered
        """
        self._ensure_loaded()
        self._register(model)
        self._added.append(model)

    def _register(self, model: WaiterModel, source: Optional[Path] = None) -> None:
        for name in model.waiters:
            if name in self._cache:
                raise ConfigurationError(
                    f"Duplicate waiter '{name}' in {source or 'model'} "
                    f"(already defined in {self._sources.get(name, 'model')})"
                )
        for name, waiter_def in model.waiters.items():
            self._cache[name] = waiter_def
            if source is not None:
                self._sources[name] = source
            self._hash_index[self.compute_hash(waiter_def)] = name

    def get(self, name: str) -> WaiterDef:
        """
        Get a WaiterDef by name.

        Raises:
            WaiterNotFoundError: If no loaded file defines this waiter
            ConfigurationError: If any definition file is invalid
        """
        self._ensure_loaded()
        if name not in self._cache:
            raise WaiterNotFoundError(
                f"Waiter definition not found: {name}. Available: {self.list_waiters()}"
            )
        return self._cache[name]

    def has(self, name: str) -> bool:
        self._ensure_loaded()
        return name in self._cache

    def source_of(self, name: str) -> Optional[Path]:
        """File a waiter was loaded from, if it came from a file."""
        self._ensure_loaded()
        return self._sources.get(name)

    def load_by_hash(self, sha256: str) -> Optional[WaiterDef]:
        """
        Load a WaiterDef by its content hash.

        Returns:
            The WaiterDef if found in cache, None otherwise
        """
        name = self._hash_index.get(sha256)
        if name is None:
            return None
        return self._cache.get(name)

    def list_waiters(self) -> list[str]:
        """
        List all available waiter names.

        Returns:
            Sorted list of waiter names
        """
        self._ensure_loaded()
        return sorted(self._cache.keys())

    @staticmethod
    def compute_hash(waiter_def: WaiterDef) -> str:
        """
        Compute SHA256 hash of a WaiterDef for content addressing.

        Uses canonical JSON serialization (sorted keys, no whitespace)
        so identical definitions hash identically. The name is part of
        the hash.
        """
        payload = {"name": waiter_def.name, **waiter_def.to_dict()}
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()

    def clear_cache(self) -> None:
        """Clear the definition cache."""
        self._cache.clear()
        self._sources.clear()
        self._hash_index.clear()
        self._loaded = False

    def preload_all(self) -> int:
        """
        Load every definition file into the cache.

        Useful for startup validation: every file is parsed and every
        acceptor validated.

        Returns:
            Number of waiters loaded

        Raises:
            ConfigurationError: If any definition file is invalid
        """
        self.clear_cache()
        # Mark loaded first so _ensure_loaded does not recurse
        self._loaded = True
        try:
            for path in self._definition_files():
                self._register(load_model_file(path), source=path)
            for model in self._added:
                self._register(model)
        except ConfigurationError:
            self.clear_cache()
            raise

        logger.debug(f"Loaded {len(self._cache)} waiter definition(s)")
        return len(self._cache)
