"""Domain Layer: value objects, exceptions and the ports backends implement."""
