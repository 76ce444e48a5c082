from crabclaim.models.base import Base  # noqa: F401

from crabclaim.models.crab import Crab  # noqa: F401
from crabclaim.models.airdrop_reservation import AirdropReservation  # noqa: F401
from crabclaim.models.airdrop_budget import AirdropBudget  # noqa: F401
