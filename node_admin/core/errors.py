# node_admin/core/errors.py

# -----------------------------
# Base Errors
# -----------------------------

class NodeAdminError(Exception):
    """Base class for all node admin errors."""
    pass


# -----------------------------
# Transient Errors (retried next tick)
# -----------------------------

class TransientError(NodeAdminError):
    """Collaborator temporarily unreachable or timed out."""
    pass


class RuntimeUnavailable(TransientError):
    """Container engine could not be reached."""
    pass


class RepositoryUnavailable(TransientError):
    """Node repository could not be reached or answered non-2xx."""
    pass


class ContainerCommandFailed(TransientError):
    """Command executed inside a container exited non-zero."""

    def __init__(self, container_name: str, command, exit_code: int, output: str = ""):
        self.container_name = container_name
        self.command = tuple(command)
        self.exit_code = exit_code
        self.output = output
        super().__init__(
            f"Command {' '.join(self.command)} in {container_name} "
            f"exited with {exit_code}"
        )


# -----------------------------
# Conflict Errors (abandon plan, re-derive next tick)
# -----------------------------

class ConflictError(NodeAdminError):
    """Desired state changed between read and act."""
    pass


class ContainerNameConflict(ConflictError):
    """Container name is claimed by another node."""
    pass


# -----------------------------
# Non-retryable Errors (reported as node fault)
# -----------------------------

class NonRetryableError(NodeAdminError):
    """Fault that repeating the same action will not fix."""
    pass


class ImageInvalid(NonRetryableError):
    pass


class ResourceExceeded(NonRetryableError):
    pass


class InvalidNodeSpec(NonRetryableError):
    """Repository returned a node document that cannot be used."""
    pass


# -----------------------------
# Storage Errors
# -----------------------------

class StorageFault(NodeAdminError):
    """Archiving node storage failed. Node must stay dirty."""
    pass


# -----------------------------
# Lifecycle Errors
# -----------------------------

class InvalidStateTransition(NodeAdminError):
    """Illegal node state transition attempted."""
    pass
