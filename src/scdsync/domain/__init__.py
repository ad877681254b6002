"""Pure reconciliation core: hashing, active-record index, planning and execution."""
