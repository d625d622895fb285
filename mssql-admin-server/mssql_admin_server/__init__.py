"""
mssql-admin-server - MCP tool server for mssql-admin-core operations.
"""
