from collections.abc import Callable
from collections.abc import Iterable
from concurrent.futures import as_completed
from concurrent.futures import ThreadPoolExecutor

import structlog

from buildinfo.core.errors import TraversalError
from buildinfo.models.dependency import Dependency

logger = structlog.get_logger('traverse_service')

# Returns whether to keep the dependency; may enrich it (e.g. its checksum) in place.
TraverseFunc = Callable[[Dependency], bool]


def traverse_dependencies(
    dependencies: Iterable[Dependency],
    traverse_func: TraverseFunc | None = None,
    threads: int = 1,
) -> list[Dependency]:
    """
    Runs `traverse_func` on every dependency using up to `threads` workers and
    returns the ones it kept, in input order.

    When callbacks fail, the first failure is raised as a TraversalError once
    all workers are done; later failures are dropped. Work already done by
    other callbacks is not undone, so the dependency set must be treated as
    incomplete.
    """
    dependencies = list(dependencies)
    if traverse_func is None:
        return dependencies

    kept: dict[int, Dependency] = {}
    first_error: Exception | None = None
    with ThreadPoolExecutor(max_workers=max(threads, 1)) as executor:
        futures = {
            executor.submit(traverse_func, dependency): index
            for index, dependency in enumerate(dependencies)
        }
        for future in as_completed(futures):
            index = futures[future]
            try:
                keep = future.result()
            except Exception as e:
                if first_error is None:
                    first_error = e
                else:
                    logger.debug(
                        'Discarding additional traverse error',
                        dependency=dependencies[index].id, error=str(e),
                    )
                continue
            if keep:
                kept[index] = dependencies[index]

    result = [kept[index] for index in sorted(kept)]
    if first_error is not None:
        raise TraversalError(
            f"Failed to process dependencies: {first_error}", dependencies=result,
        ) from first_error
    return result
