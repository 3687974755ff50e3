from __future__ import annotations

from enum import IntEnum, StrEnum


class Currency(StrEnum):
    USD = "USD"
    ARS = "ARS"


BASE_CURRENCY = Currency.USD


class PassengerRole(StrEnum):
    MAIN = "main_passenger"
    COMPANION = "companion"


class WizardStep(IntEnum):
    PASSENGERS = 1
    PRICE = 2
    TEMPLATE = 3
    DATES = 4
    COST_PROVIDER = 5
    EDIT_SERVICES = 6
    REVIEW = 7

    @property
    def title(self) -> str:
        return _STEP_TITLES[self]


_STEP_TITLES = {
    WizardStep.PASSENGERS: "Passengers & Companions",
    WizardStep.PRICE: "Price Per Passenger",
    WizardStep.TEMPLATE: "Select Service Template",
    WizardStep.DATES: "Service Dates",
    WizardStep.COST_PROVIDER: "Service Cost & Provider",
    WizardStep.EDIT_SERVICES: "Edit Services",
    WizardStep.REVIEW: "Review & Create",
}
