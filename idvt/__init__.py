"""IDVT query engine: resolves dashboard indicators against DHIS2 and friends."""
