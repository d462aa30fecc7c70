"""Bank, consensus and distribution modules that refresh indexed data from a source."""