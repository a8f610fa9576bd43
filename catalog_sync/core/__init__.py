# Core: settings and the error taxonomy.
