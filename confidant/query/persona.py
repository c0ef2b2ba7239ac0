"""
Persona Loader

Loads tone/style overlays from JSON files, e.g. ~/.confidant/personas/default.json:

    {
      "name": "default",
      "tone": "friendly",
      "speaking_style": "concise",
      "constraints": ["Never use emoji"]
    }
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from ..common.errors import PersonaError
from ..common.schemas import Persona

logger = logging.getLogger("confidant.query.persona")


class PersonaLoader:
    """In-memory registry of personas, keyed by name"""

    def __init__(self, default_name: str = "default"):
        self._personas: Dict[str, Persona] = {}
        self._default_name = default_name

    def __contains__(self, name: object) -> bool:
        return name in self._personas

    def load_file(self, path: Union[str, Path]) -> Persona:
        path = Path(path)
        try:
            with open(path) as f:
                data = json.load(f)
            persona = Persona.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise PersonaError(f"Failed to load persona from {path}: {e}") from e
        self._personas[persona.name] = persona
        logger.debug("Loaded persona %s from %s", persona.name, path)
        return persona

    def load_directory(self, path: Union[str, Path]) -> List[Persona]:
        """Load every *.json persona in a directory, in file name order"""
        directory = Path(path)
        if not directory.is_dir():
            raise PersonaError(f"Persona directory not found: {directory}")
        personas = [self.load_file(p) for p in sorted(directory.glob("*.json"))]
        logger.info("Loaded %d personas from %s", len(personas), directory)
        return personas

    def get(self, name: str) -> Optional[Persona]:
        return self._personas.get(name)

    def get_default(self) -> Persona:
        persona = self._personas.get(self._default_name)
        if persona is None:
            raise PersonaError(f'Default persona "{self._default_name}" not found')
        return persona

    def set_default(self, name: str) -> None:
        self._default_name = name

    def add(self, persona: Persona) -> None:
        self._personas[persona.name] = persona

    def names(self) -> List[str]:
        return list(self._personas)

    def clear(self) -> None:
        self._personas.clear()
