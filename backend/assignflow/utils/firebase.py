import asyncio
from functools import partial


async def firestore_run(fn, *args, **kwargs):
    """
    Run blocking Firestore SDK calls safely in async code.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        partial(fn, *args, **kwargs)
    )


async def stream_docs(query) -> list:
    """Materialise a query in the executor; returns [(id, data), ...]."""
    def _collect():
        return [(doc.id, doc.to_dict()) for doc in query.stream()]
    return await firestore_run(_collect)


async def get_doc(ref):
    """Fetch a document; returns its data dict or None."""
    snap = await firestore_run(ref.get)
    return snap.to_dict() if snap.exists else None
