# Test package
