"""Typed database rows and coin encoding helpers."""