from abc import ABC, abstractmethod
from kengine.processor.models import RawDocument


class BaseParser(ABC):
    @abstractmethod
    def can_handle(self, file_path: str) -> bool:
        """Devuelve True si el parser puede manejar el archivo"""
        raise NotImplementedError

    @abstractmethod
    def parse(self, file_path: str) -> RawDocument:
        """Parsea el archivo y devuelve un RawDocument con sus páginas en orden"""
        raise NotImplementedError
