from bt_intercomm.registration.coordinator import RegistrationCoordinator, RegistrationSettings

__all__ = ["RegistrationCoordinator", "RegistrationSettings"]
