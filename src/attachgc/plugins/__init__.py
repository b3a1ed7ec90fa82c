"""Optional storage backends that need third-party SDKs."""
