"""Existence guard run before every create.

The guard query and the create that follows are not atomic; the remote
API is the only serialization point. A 409 Conflict from the create call
is translated to AlreadyExistsError by the client, with the same outcome
as a guard hit.
"""

from __future__ import annotations

import logging

from .errors import AlreadyExistsError, NotFoundError
from .identity import ClusterIdentity
from .remote import ClusterClient

logger = logging.getLogger(__name__)


def ensure_absent(client: ClusterClient, identity: ClusterIdentity) -> None:
    """Fail if a cluster with this identity already exists.

    Raises:
        AlreadyExistsError: If the remote API returns a cluster with an ID.
        ClusterOperatorError: Any other failure of the query propagates.
    """
    try:
        existing = client.get(identity)
    except NotFoundError:
        logger.debug("Existence guard passed", extra={"resource_id": identity.resource_id})
        return

    if existing.id:
        logger.warning(
            "Cluster already exists and must be imported to be managed",
            extra={"resource_id": existing.id},
        )
        raise AlreadyExistsError(existing.id)
