import re

CONTRACT_ID_PATTERN = r"^C[A-Z2-7]{55}$"
_CONTRACT_ID_RE = re.compile(CONTRACT_ID_PATTERN)


class InvalidContractIdError(ValueError):
    """Empty or malformed contract identifier. Raised before any I/O."""


class SourceUnavailableError(Exception):
    """Horizon or Soroban RPC could not be reached or answered with an error."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class MalformedRecordError(Exception):
    """A single upstream record is missing a required field."""


def validate_contract_id(contract_id: str) -> str:
    if not contract_id or not contract_id.strip():
        raise InvalidContractIdError("Contract ID is required")
    contract_id = contract_id.strip()
    if not _CONTRACT_ID_RE.match(contract_id):
        raise InvalidContractIdError(f"Invalid contract ID: {contract_id}")
    return contract_id
