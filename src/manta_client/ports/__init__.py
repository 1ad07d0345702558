"""Ports - interfaces between the client core and the outside world."""
