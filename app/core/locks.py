import asyncio
import uuid
import weakref


class DocumentLocks:
    """Реестр блокировок по документам.

    Точка сериализации для изменения выдач доступа, погашения ссылок и
    удаления документа в пределах процесса. Блокировка живет, пока ее
    кто-то удерживает или ждет.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, document_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(document_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[document_id] = lock
        return lock

    def clear(self) -> None:
        self._locks.clear()


document_locks = DocumentLocks()
