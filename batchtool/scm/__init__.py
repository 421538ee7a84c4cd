"""Provider interface and registry, shared models, and the Bitbucket and in-memory providers."""