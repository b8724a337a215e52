"""Parsers and formatters for Kubernetes resource quantity strings."""

_BINARY_MULTIPLIERS = {
    "Ki": 1024,
    "Mi": 1024**2,
    "Gi": 1024**3,
    "Ti": 1024**4,
}

_DECIMAL_MULTIPLIERS = {
    "K": 1000,
    "M": 1000**2,
    "G": 1000**3,
    "T": 1000**4,
}


def parse_cpu(cpu_str: str) -> int:
    """Parse CPU quantity and return millicores."""
    value = str(cpu_str or "").strip()
    if not value or value == "<none>":
        return 0

    try:
        if value.endswith("m"):
            return int(float(value[:-1]))
        if value.endswith("u"):
            return int(float(value[:-1]) / 1000)
        if value.endswith("n"):
            return int(float(value[:-1]) / 1_000_000)
        return int(float(value) * 1000)
    except ValueError:
        return 0


def parse_memory(memory_str: str) -> int:
    """Parse memory quantity and return bytes."""
    value = str(memory_str or "").strip()
    if not value or value == "<none>":
        return 0

    for multipliers in (_BINARY_MULTIPLIERS, _DECIMAL_MULTIPLIERS):
        for suffix, multiplier in multipliers.items():
            if value.endswith(suffix):
                number = value[: -len(suffix)]
                return int(number) * multiplier if number.isdigit() else 0

    return int(value) if value.isdigit() else 0


def format_cpu(millicores: int) -> str:
    """Format millicores for display ("4 cores", "1 core", "250m")."""
    if millicores >= 1000 and millicores % 1000 == 0:
        cores = millicores // 1000
        return f"{cores} {'core' if cores == 1 else 'cores'}"
    return f"{millicores}m"


def format_memory(num_bytes: int) -> str:
    """Format bytes using the largest whole binary unit up to Gi."""
    if num_bytes >= 1024**3:
        return f"{num_bytes // 1024**3}Gi"
    if num_bytes >= 1024**2:
        return f"{num_bytes // 1024**2}Mi"
    return f"{num_bytes}B"
