# carving — Embedded File Carving & Forensic Anomaly Engine
# Pure-Python signature carving over an in-memory byte buffer.
#
# Architecture (bottom → top):
#   config      — Every cap and threshold (CarvingConfig)
#   signatures  — Ordered signature registry (first match wins)
#   matcher     — Bounds-safe magic / secondary / context checks
#   pe          — PE header + section table parsing
#   boundary    — End-of-file resolution (footer, EOCD, %%EOF, SizeOfImage, RIFF)
#   entropy     — Shannon entropy + byte/text helpers
#   confidence  — 0–100 confidence score + structural validators
#   metadata    — JPEG segments, PNG chunks, ZIP entries, image headers
#   anomalies   — Polyglot, PE overlay, hidden data, null-byte gaps
#   timeline    — Forensic timeline + scan counters
#   models      — CarvedFile, AnalysisResult & friends
#   engine      — Orchestrator (CarvingEngine)
