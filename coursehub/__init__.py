"""CourseHub account service: registration, phone OTP verification and login."""

__version__ = "1.0.0"
