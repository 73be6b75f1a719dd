"""domainverify - prove customers control the domains they bring."""

__version__ = "0.1.0"
