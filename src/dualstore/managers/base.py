"""Base model manager interface.

Model managers own every write. Repositories read; managers create, update
and delete. Operations that find nothing to do report it through their
return value (``False`` or ``0``) rather than raising.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, Sequence, TypeVar, Union

from ..capabilities import Capabilities
from ..config import Settings, get_settings
from ..query import ParamsInput

logger = logging.getLogger(__name__)

# Type variable for the record type written by the manager
T = TypeVar("T")

UniqueBy = Optional[Union[str, Sequence[str]]]


class ModelManager(ABC, Generic[T]):
    """
    Abstract base class for model managers.

    Bulk operations are not atomic across their inputs: a failure part way
    through leaves the records already written in place.

    Type Parameters:
        T: The type of record written by this manager
    """

    capabilities: Capabilities

    def __init__(
        self,
        settings: Optional[Settings] = None,
        capabilities: Optional[Capabilities] = None,
    ) -> None:
        self._settings = settings
        if capabilities is not None:
            self.capabilities = capabilities

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    @abstractmethod
    def model_name(self) -> str:
        pass

    @abstractmethod
    def new_instance(self, **fields: Any) -> T:
        """Create an unsaved record."""
        pass

    @abstractmethod
    def create(self, data: Mapping[str, Any]) -> T:
        """
        Create and persist a record.

        Args:
            data: Field values

        Returns:
            The stored record (including generated fields)
        """
        pass

    @abstractmethod
    def update(self, record: T, data: Mapping[str, Any]) -> bool:
        """
        Apply ``data`` to a stored record.

        Returns:
            True if the record was written, False if there was nothing to write
        """
        pass

    @abstractmethod
    def delete(self, record: T) -> bool:
        """
        Delete a stored record.

        Returns:
            True if the record was deleted, False if it no longer existed
        """
        pass

    @abstractmethod
    def delete_by_params(self, params: ParamsInput) -> bool:
        """Delete every record matching ``params``; False if nothing matched."""
        pass

    @abstractmethod
    def bulk_delete_by_params(self, params: ParamsInput) -> int:
        """Delete every record matching ``params`` and return how many went."""
        pass

    @abstractmethod
    def update_by_params(self, values: Mapping[str, Any], params: ParamsInput) -> int:
        """Set ``values`` on every record matching ``params``; returns the count."""
        pass

    @abstractmethod
    def bulk_create(self, records: Sequence[Mapping[str, Any]]) -> int:
        """Create many records and return how many were written."""
        pass

    @abstractmethod
    def insert_or_ignore(self, records: Sequence[Mapping[str, Any]]) -> int:
        """Create records, skipping those that collide with stored ones.

        Returns:
            Number of records actually inserted
        """
        pass

    @abstractmethod
    def find_by_params(self, params: ParamsInput) -> Optional[T]:
        """First stored record matching ``params``, used by the upsert helpers."""
        pass

    @abstractmethod
    def _update_by_key(self, key_field: str, key: Any, fields: Dict[str, Any]) -> int:
        """Apply ``fields`` to the record(s) whose ``key_field`` equals ``key``."""
        pass

    def bulk_update(self, records: Iterable[Mapping[str, Any]], key_field: str = "id") -> int:
        """
        Update many records, each identified by ``key_field``.

        Records without the key, or with nothing besides the key, are
        skipped. Each record is written on its own.

        Args:
            records: Field mappings including the key
            key_field: Field matching stored records

        Returns:
            Number of records actually updated
        """
        updated = 0
        total = 0
        for record in records:
            total += 1
            fields = dict(record)
            key = fields.pop(key_field, None)
            if key is None:
                logger.warning(f"Skipping {self.model_name} bulk update record without '{key_field}'")
                continue
            if not fields:
                logger.warning(f"Skipping {self.model_name} bulk update for {key_field}={key!r}: no fields")
                continue
            updated += self._update_by_key(key_field, key, fields)

        if total:
            logger.info(f"Bulk updated {updated} of {total} {self.model_name} records")
        return updated

    def update_or_create(
        self,
        attributes: Mapping[str, Any],
        values: Optional[Mapping[str, Any]] = None,
    ) -> T:
        """Update the record matching ``attributes`` with ``values``, or create it.

        A record deleted between the lookup and the write is created afresh
        rather than written back.
        """
        values = dict(values or {})
        existing = self.find_by_params(attributes)
        if existing is not None:
            if not values or self.update(existing, values):
                return existing
            current = self.find_by_params(attributes)
            if current is not None:
                return current
            logger.info(f"{self.model_name} record vanished before update; creating it")
        return self.create({**attributes, **values})

    def get_or_create(
        self,
        attributes: Mapping[str, Any],
        values: Optional[Mapping[str, Any]] = None,
    ) -> T:
        """Return the record matching ``attributes``, creating it when missing."""
        existing = self.find_by_params(attributes)
        if existing is not None:
            return existing
        return self.create({**attributes, **dict(values or {})})

    def raw_mass_update(self, values: List[Any], unique_by: UniqueBy = None) -> int:
        """
        Update many records with one conditional statement.

        Args:
            values: Records (mappings or stored records) carrying the new values
            unique_by: Column(s) identifying each record; the primary key by default

        Returns:
            Number of rows updated

        Raises:
            MassUpdateNotAvailableError: If the record type does not declare
                the ``mass_update`` capability
        """
        if not values:
            return 0
        self.capabilities.require_mass_update(self.model_name)
        return self._mass_update(values, unique_by)

    @abstractmethod
    def _mass_update(self, values: List[Any], unique_by: UniqueBy) -> int:
        """Run the mass update once the capability gate has passed."""
        pass
