async def raw_count(engine, table: str) -> int:
    """Count rows bypassing the ORM."""
    async with engine.connect() as conn:
        result = await conn.exec_driver_sql(f"SELECT COUNT(*) FROM {table}")
        return result.scalar()
