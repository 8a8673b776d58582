"""Host provisioning: Docker/Compose dependency checks and resource report."""

from farmdock.provisioning.host import (
    check_system_resources,
    detect_docker_compose,
    install_dependencies,
    validate_dependencies,
)

__all__ = [
    "check_system_resources",
    "detect_docker_compose",
    "install_dependencies",
    "validate_dependencies",
]
