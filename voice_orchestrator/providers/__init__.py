# Providers package
