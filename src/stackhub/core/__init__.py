"""Instance lifecycle core: allocation, persistence, provisioning and teardown."""
